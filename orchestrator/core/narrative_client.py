"""
Narrative Generator Client

Drives the narrative provider with bounded retry and linear backoff, and
supplies the deterministic fallback chapter when every attempt fails.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from config import NarrativeRetryConfig
from models import ChapterNarrative, ChapterOutcome, CheckInOutcome, Encouragement, NarrativeContext

from core.errors import GenerationError

logger = logging.getLogger("orchestrator.narrative")

FALLBACK_SAGA_SUMMARY = "An ongoing saga of determination."

_FALLBACK_TITLES = {
    CheckInOutcome.COMPLETED: "Victory",
    CheckInOutcome.PARTIAL: "Progress",
    CheckInOutcome.MISSED: "Setback",
}

_FALLBACK_TEXTS = {
    CheckInOutcome.COMPLETED: "The hero succeeded today.",
    CheckInOutcome.PARTIAL: "The hero made progress today.",
    CheckInOutcome.MISSED: "The hero faced a challenge today.",
}

_FALLBACK_LAST_SUMMARIES = {
    CheckInOutcome.COMPLETED: "The hero achieved their goal on this day.",
    CheckInOutcome.PARTIAL: "The hero made progress on this day.",
    CheckInOutcome.MISSED: "The hero faced a setback on this day.",
}


def build_fallback_narrative(
    outcome: CheckInOutcome,
    chapter_index: int,
    previous_saga_summary: Optional[str],
) -> ChapterNarrative:
    """Deterministic chapter used when the provider cannot be reached."""
    outcome = CheckInOutcome(outcome)
    return ChapterNarrative(
        chapter_title=f"Chapter {chapter_index}: {_FALLBACK_TITLES[outcome]}",
        chapter_text=_FALLBACK_TEXTS[outcome],
        new_saga_summary_short=previous_saga_summary or FALLBACK_SAGA_SUMMARY,
        new_last_chapter_summary=_FALLBACK_LAST_SUMMARIES[outcome],
        encouragement=Encouragement(headline="Keep going!", body="Every step counts. You got this."),
        micro_plan="Keep pushing forward!",
    )


class NarrativeGeneratorClient:
    """
    Retrying wrapper around a NarrativeProvider.

    Attempts are independent; attempt k (1-based) failing waits
    k * backoff_seconds before the next one. Each attempt is bounded by
    timeout_seconds.
    """

    def __init__(
        self,
        provider,
        retry: Optional[NarrativeRetryConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.retry = retry or NarrativeRetryConfig()
        self._sleep = sleep

    async def generate(self, context: NarrativeContext) -> ChapterNarrative:
        """
        Generate a chapter narrative.

        Raises:
            GenerationError: after max_attempts consecutive failures.
        """
        if self.provider is None:
            raise GenerationError("No narrative provider configured")

        max_attempts = self.retry.max_attempts
        last_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            try:
                return await asyncio.wait_for(
                    self.provider.generate_chapter(context),
                    timeout=self.retry.timeout_seconds,
                )
            except asyncio.TimeoutError:
                last_error = GenerationError(f"Narrative generation timed out after {self.retry.timeout_seconds}s")
            except GenerationError as e:
                last_error = e
            except Exception as e:
                last_error = GenerationError(str(e))

            logger.warning(f"[generate] Attempt {attempt}/{max_attempts} failed: {last_error}")
            if attempt < max_attempts:
                await self._sleep(attempt * self.retry.backoff_seconds)

        logger.error(f"[generate] All {max_attempts} attempts failed: {last_error}")
        raise GenerationError(f"Narrative generation failed after {max_attempts} attempts: {last_error}")

    async def generate_or_fallback(
        self,
        context: NarrativeContext,
        chapter_index: int,
    ) -> ChapterNarrative:
        try:
            return await self.generate(context)
        except GenerationError:
            logger.info(f"[generate_or_fallback] Using fallback narrative for chapter {chapter_index}")
            outcome = context.outcome
            if outcome == ChapterOutcome.ORIGIN:
                outcome = ChapterOutcome.COMPLETED
            return build_fallback_narrative(
                CheckInOutcome(outcome.value),
                chapter_index,
                context.saga_summary_short,
            )
