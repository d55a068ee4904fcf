"""
Chapter Narrative Prompt - Check-in Phase
Writes the next chapter from N+2 context and the check-in outcome.
"""

from models import NarrativeContext
from services.security import sanitize_for_prompt

CHAPTER_SYSTEM_PROMPT = """You are a narrative engine for a personal habit comic.
Generate a chapter for a habit-tracking comic saga. Return ONLY valid JSON with these exact keys:
- chapterTitle: A short, engaging chapter title (e.g., "Chapter 5: The Test of Will")
- chapterText: A 3-5 paragraph narrative describing the hero's experience (outcome: {outcome})
- newSagaSummaryShort: A 2-3 sentence summary of the entire saga so far (updated with this chapter)
- newLastChapterSummary: A 1-2 sentence summary of this specific chapter
- encouragement: An object with:
    - headline: A 1-line encouraging phrase
    - body: 1-3 short sentences of support or advice
- micro_plan: A 1-sentence specific suggestion for next time

Keep the narrative engaging, appropriate for a comic book, and aligned with the theme.
For the encouragement, be supportive but realistic based on the outcome and barrier."""

OUTCOME_DESCRIPTIONS = {
    "origin": "This is the origin story - the hero embarks on their quest.",
    "completed": "The hero successfully completed their goal today.",
    "partial": "The hero made partial progress toward their goal today.",
    "missed": "The hero faced a setback and did not complete their goal today.",
}


def build_chapter_system_prompt(context: NarrativeContext) -> str:
    return CHAPTER_SYSTEM_PROMPT.format(outcome=context.outcome.value)


def build_chapter_user_prompt(context: NarrativeContext) -> str:
    """Assemble the user prompt; every user-authored field is sanitized."""
    lines = [
        f"Hero Profile: {context.hero_profile}",
        f"Theme: {context.theme_profile}",
    ]
    if context.goal_title:
        lines.append(f"Goal: {sanitize_for_prompt(context.goal_title)}")
    if context.saga_summary_short:
        lines.append(f"Overall Saga Summary: {context.saga_summary_short}")
    else:
        lines.append("This is the beginning of the saga.")
    if context.older_chapter_summary:
        lines.append(f"Earlier Chapter: {context.older_chapter_summary}")
    if context.previous_chapter_title:
        lines.append(f'Most Recent Chapter: "{context.previous_chapter_title}"')
    if context.previous_chapter_text:
        lines.append(f"Previous Chapter Full Text:\n{context.previous_chapter_text}")
    elif context.last_chapter_summary:
        lines.append(f"Last Chapter Summary: {context.last_chapter_summary}")

    lines.append(f"Outcome: {OUTCOME_DESCRIPTIONS[context.outcome.value]}")

    optional = [
        ("User Note", context.note, 500),
        ("Barrier", context.barrier, 200),
        ("Retry Plan", context.retry_plan, 300),
        ("Current Frequency", context.context.current_frequency, 200),
        ("Biggest Blocker", context.context.biggest_blocker, 300),
        ("Current Status", context.context.current_status, 200),
        ("Past Efforts", context.context.past_efforts, 300),
        ("Context Notes", context.context.notes, 500),
        ("User Name", context.user_profile.name, 50),
        ("User Age", context.user_profile.age, 50),
        ("User Bio", context.user_profile.bio, 300),
    ]
    for label, value, limit in optional:
        cleaned = sanitize_for_prompt(value, limit)
        if cleaned:
            lines.append(f"{label}: {cleaned}")

    lines.append("")
    lines.append(
        "Generate the chapter narrative, encouragement, and micro_plan. "
        "Build upon the previous chapter to maintain story continuity."
    )
    return "\n".join(lines)
