"""
Unit tests for the Narrative Generator Client and context window.
"""

import asyncio

import pytest

from config import NarrativeRetryConfig
from core.context_window import build_context_window
from core.errors import DependencyError, GenerationError
from core.narrative_client import NarrativeGeneratorClient, build_fallback_narrative
from models import ChapterOutcome, CheckInOutcome, NarrativeContext

from conftest import FakeNarrativeProvider


def _context(outcome=ChapterOutcome.COMPLETED, summary="So far so good."):
    return NarrativeContext(
        hero_profile="A hero.",
        theme_profile="A world.",
        saga_summary_short=summary,
        outcome=outcome,
    )


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class TestFallbackNarrative:

    @pytest.mark.parametrize("outcome,title,text,last", [
        (CheckInOutcome.COMPLETED, "Chapter 4: Victory", "The hero succeeded today.",
         "The hero achieved their goal on this day."),
        (CheckInOutcome.PARTIAL, "Chapter 4: Progress", "The hero made progress today.",
         "The hero made progress on this day."),
        (CheckInOutcome.MISSED, "Chapter 4: Setback", "The hero faced a challenge today.",
         "The hero faced a setback on this day."),
    ])
    def test_templates(self, outcome, title, text, last):
        narrative = build_fallback_narrative(outcome, 4, "Earlier saga.")

        assert narrative.chapter_title == title
        assert narrative.chapter_text == text
        assert narrative.new_last_chapter_summary == last
        assert narrative.new_saga_summary_short == "Earlier saga."
        assert narrative.encouragement.headline == "Keep going!"
        assert narrative.encouragement.body == "Every step counts. You got this."
        assert narrative.micro_plan == "Keep pushing forward!"

    def test_default_saga_summary(self):
        narrative = build_fallback_narrative(CheckInOutcome.MISSED, 2, None)
        assert narrative.new_saga_summary_short == "An ongoing saga of determination."


class TestNarrativeGeneratorClient:

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        provider = FakeNarrativeProvider()
        sleep = RecordingSleep()
        client = NarrativeGeneratorClient(provider, sleep=sleep)

        narrative = await client.generate(_context())

        assert narrative.chapter_title == "Chapter 2: The Climb"
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_linear_backoff_then_success(self):
        provider = FakeNarrativeProvider(failures=2)
        sleep = RecordingSleep()
        client = NarrativeGeneratorClient(provider, sleep=sleep)

        narrative = await client.generate(_context())

        assert narrative.chapter_title == "Chapter 2: The Climb"
        assert len(provider.chapter_calls) == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        provider = FakeNarrativeProvider(failures=5)
        sleep = RecordingSleep()
        client = NarrativeGeneratorClient(provider, sleep=sleep)

        with pytest.raises(GenerationError):
            await client.generate(_context())

        assert len(provider.chapter_calls) == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self):
        class SlowProvider:
            calls = 0

            async def generate_chapter(self, context):
                SlowProvider.calls += 1
                await asyncio.sleep(1)

        client = NarrativeGeneratorClient(
            SlowProvider(),
            NarrativeRetryConfig(max_attempts=2, backoff_seconds=0.0, timeout_seconds=0.01),
            sleep=RecordingSleep(),
        )

        with pytest.raises(GenerationError):
            await client.generate(_context())
        assert SlowProvider.calls == 2

    @pytest.mark.asyncio
    async def test_fallback_after_three_failures(self):
        client = NarrativeGeneratorClient(FakeNarrativeProvider(failures=3), sleep=RecordingSleep())

        narrative = await client.generate_or_fallback(_context(ChapterOutcome.PARTIAL, None), 6)

        assert narrative.chapter_title == "Chapter 6: Progress"
        assert narrative.new_saga_summary_short == "An ongoing saga of determination."

    @pytest.mark.asyncio
    async def test_no_provider_falls_back(self):
        client = NarrativeGeneratorClient(None, sleep=RecordingSleep())

        narrative = await client.generate_or_fallback(_context(ChapterOutcome.MISSED), 3)

        assert narrative.chapter_title == "Chapter 3: Setback"


class TestContextWindow:

    @pytest.mark.asyncio
    async def test_empty_history(self, store):
        window = await build_context_window(store, "g1")

        assert window.previous_chapter is None
        assert window.older_chapter is None
        assert window.next_chapter_index == 1

    @pytest.mark.asyncio
    async def test_two_most_recent(self, store):
        for i in (1, 2, 3):
            store.add_chapter("g1", "u1", i)

        window = await build_context_window(store, "g1")

        assert window.previous_chapter.chapter_index == 3
        assert window.previous_chapter_text == "Text 3"
        assert window.older_chapter_summary == "Chapter 2: Title 2"
        assert window.next_chapter_index == 4

    @pytest.mark.asyncio
    async def test_fetch_failure_is_fatal(self, store):
        store.fail.add("get_recent_chapters")

        with pytest.raises(DependencyError) as exc_info:
            await build_context_window(store, "g1")

        assert exc_info.value.code == "CHAPTER_FETCH_ERROR"
        assert exc_info.value.status_code == 500
