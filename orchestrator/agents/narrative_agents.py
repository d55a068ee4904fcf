"""
Narrative Providers for Habit Saga
Chapter, origin story, habit plan and finale generation on Gemini.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from agents.base import GeminiClient, NarrativeProvider, create_gemini_client
from config import GeminiConfig
from core.errors import GenerationError, MalformedOutputError
from core.habit_plan import build_fallback_habit_plan, normalize_habit_plan
from models import (
    ChapterNarrative,
    ChapterOutcome,
    Encouragement,
    FinaleInput,
    FinaleNarrative,
    HabitPlanInput,
    HabitTask,
    NarrativeContext,
    OriginStory,
    OriginStoryInput,
)
from prompts import (
    FINALE_SYSTEM_PROMPT,
    HABIT_PLAN_SYSTEM_PROMPT,
    ORIGIN_SYSTEM_PROMPT,
    build_chapter_system_prompt,
    build_chapter_user_prompt,
    build_finale_user_prompt,
    build_habit_plan_user_prompt,
    build_origin_user_prompt,
)

logger = logging.getLogger("orchestrator.agents.narrative")

DEFAULT_ENCOURAGEMENT = {"headline": "Keep going!", "body": "Every step counts. You got this."}
DEFAULT_MICRO_PLAN = "Keep pushing forward!"
DEFAULT_SAGA_SUMMARY = "An ongoing saga of determination."

_LAST_SUMMARY_DEFAULTS = {
    ChapterOutcome.ORIGIN: "The hero takes their first step forward.",
    ChapterOutcome.COMPLETED: "The hero achieved their goal on this day.",
    ChapterOutcome.PARTIAL: "The hero made progress on this day.",
    ChapterOutcome.MISSED: "The hero faced a challenge on this day.",
}

HABIT_PLAN_TEMPERATURE = 0.7
HABIT_PLAN_MAX_TOKENS = 2000


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def origin_story_defaults(theme: str) -> Dict[str, str]:
    return {
        "hero_profile": "A determined hero ready to begin their journey.",
        "theme_profile": f"A {theme} world filled with adventure.",
        "origin_chapter_title": "Chapter 1: The Beginning",
        "origin_chapter_text": "Your journey begins here. The path ahead is filled with challenges and triumphs.",
        "saga_summary_short": "A new hero embarks on a quest to achieve their goal.",
        "last_chapter_summary": "The hero takes their first step forward.",
    }


def parse_chapter_narrative(parsed: Any, context: NarrativeContext) -> ChapterNarrative:
    """Fill missing keys from defaults. A non-object body is a generation error."""
    if not isinstance(parsed, dict):
        raise GenerationError("Chapter narrative must be a JSON object")

    raw_encouragement = parsed.get("encouragement")
    if not isinstance(raw_encouragement, dict):
        raw_encouragement = {}
    encouragement = Encouragement(
        headline=_text(raw_encouragement.get("headline")) or DEFAULT_ENCOURAGEMENT["headline"],
        body=_text(raw_encouragement.get("body")) or DEFAULT_ENCOURAGEMENT["body"],
    )

    return ChapterNarrative(
        chapter_title=_text(parsed.get("chapterTitle")) or f"Chapter: {context.outcome.value}",
        chapter_text=_text(parsed.get("chapterText")) or "The hero continues their journey.",
        new_saga_summary_short=(
            _text(parsed.get("newSagaSummaryShort")) or context.saga_summary_short or DEFAULT_SAGA_SUMMARY
        ),
        new_last_chapter_summary=(
            _text(parsed.get("newLastChapterSummary")) or _LAST_SUMMARY_DEFAULTS[context.outcome]
        ),
        encouragement=encouragement,
        micro_plan=(
            _text(parsed.get("micro_plan"))
            or _text(parsed.get("microPlan"))
            or _text(raw_encouragement.get("microPlan"))
            or DEFAULT_MICRO_PLAN
        ),
    )


def parse_origin_story(parsed: Any, theme: str) -> OriginStory:
    defaults = origin_story_defaults(theme)
    if not isinstance(parsed, dict):
        raise GenerationError("Origin story must be a JSON object")
    keys = {
        "hero_profile": "heroProfile",
        "theme_profile": "themeProfile",
        "origin_chapter_title": "originChapterTitle",
        "origin_chapter_text": "originChapterText",
        "saga_summary_short": "sagaSummaryShort",
        "last_chapter_summary": "lastChapterSummary",
    }
    return OriginStory(**{
        field: _text(parsed.get(key)) or defaults[field]
        for field, key in keys.items()
    })


def finale_defaults() -> FinaleNarrative:
    return FinaleNarrative(
        finale_chapter_title="The Grand Finale",
        finale_chapter_text=(
            "The hero stands triumphant, having achieved their goal against all odds. "
            "The journey was long, but the reward is sweet."
        ),
        final_saga_summary="The hero completed their quest and became a legend.",
        celebration=Encouragement(headline="Congratulations!", body="You did it! You completed your goal."),
    )


def parse_finale_narrative(parsed: Any) -> FinaleNarrative:
    defaults = finale_defaults()
    if not isinstance(parsed, dict):
        raise GenerationError("Finale narrative must be a JSON object")
    celebration = parsed.get("celebrationMessage")
    if not isinstance(celebration, dict):
        celebration = {}
    return FinaleNarrative(
        finale_chapter_title=_text(parsed.get("finaleChapterTitle")) or defaults.finale_chapter_title,
        finale_chapter_text=_text(parsed.get("finaleChapterText")) or defaults.finale_chapter_text,
        final_saga_summary=_text(parsed.get("finalSagaSummary")) or defaults.final_saga_summary,
        celebration=Encouragement(
            headline=_text(celebration.get("headline")) or defaults.celebration.headline,
            body=_text(celebration.get("body")) or defaults.celebration.body,
        ),
    )


class GeminiNarrativeProvider(NarrativeProvider):
    """NarrativeProvider backed by the Gemini text model."""

    def __init__(self, client: GeminiClient, temperature: float = 0.8, max_output_tokens: int = 2500):
        self.client = client
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    @classmethod
    def from_config(cls, config: GeminiConfig, http_client: Optional[httpx.AsyncClient] = None) -> "GeminiNarrativeProvider":
        return cls(
            create_gemini_client(config, config.text_model, http_client=http_client),
            temperature=config.temperature,
            max_output_tokens=config.max_output_tokens,
        )

    async def generate_chapter(self, context: NarrativeContext) -> ChapterNarrative:
        logger.info(f"[generate_chapter] Generating chapter, outcome={context.outcome.value}")
        parsed = await self.client.generate_json(
            build_chapter_system_prompt(context),
            build_chapter_user_prompt(context),
            temperature=self.temperature,
            max_tokens=self.max_output_tokens,
        )
        return parse_chapter_narrative(parsed, context)

    async def generate_origin_story(self, data: OriginStoryInput) -> OriginStory:
        logger.info(f"[generate_origin_story] Goal theme={data.theme}")
        parsed = await self.client.generate_json(
            ORIGIN_SYSTEM_PROMPT,
            build_origin_user_prompt(data),
            temperature=self.temperature,
            max_tokens=self.max_output_tokens,
        )
        return parse_origin_story(parsed, data.theme)

    async def generate_habit_plan(self, data: HabitPlanInput) -> List[HabitTask]:
        """Malformed output yields the single fallback habit; transport errors propagate."""
        try:
            parsed = await self.client.generate_json(
                HABIT_PLAN_SYSTEM_PROMPT,
                build_habit_plan_user_prompt(data),
                temperature=HABIT_PLAN_TEMPERATURE,
                max_tokens=HABIT_PLAN_MAX_TOKENS,
            )
        except MalformedOutputError as e:
            logger.warning(f"[generate_habit_plan] {e}; using fallback habit")
            return build_fallback_habit_plan(data.goal_text, data.cadence)
        return normalize_habit_plan(parsed, data.goal_text, data.cadence)

    async def generate_finale(self, data: FinaleInput) -> FinaleNarrative:
        logger.info(f"[generate_finale] Closing saga after {data.total_chapters} chapters")
        parsed = await self.client.generate_json(
            FINALE_SYSTEM_PROMPT,
            build_finale_user_prompt(data),
            temperature=self.temperature,
            max_tokens=self.max_output_tokens,
        )
        return parse_finale_narrative(parsed)
