"""
Season Finale Prompt - Goal Completion Phase
Closes the saga with a triumphant final chapter and a celebration message.
"""

from models import FinaleInput
from services.security import sanitize_for_prompt

FINALE_SYSTEM_PROMPT = """You are a narrative engine for a personal habit comic.
Generate the Season Finale chapter for a completed saga. Return ONLY valid JSON with these exact keys:
- finaleChapterTitle: A short, epic title for the final chapter.
- finaleChapterText: A 3-5 paragraph finale in which the hero achieves ultimate triumph.
- finalSagaSummary: A 2-3 sentence summary of the whole saga.
- celebrationMessage: An object with "headline" and "body" congratulating the user on completing their goal.

Keep the tone triumphant, reflective and aligned with the hero and the world."""


def build_finale_user_prompt(data: FinaleInput) -> str:
    lines = [
        f"Hero Profile: {sanitize_for_prompt(data.hero_profile, 1000)}",
        f"Theme: {sanitize_for_prompt(data.theme_profile, 1000)}",
        f"Goal: {sanitize_for_prompt(data.goal_title)}",
        f"Target Date: {data.target_date or 'not set'}",
        f"Total Chapters: {data.total_chapters}",
    ]
    saga_summary = sanitize_for_prompt(data.saga_summary_short, 1000)
    if saga_summary:
        lines.append(f"Saga Summary: {saga_summary}")
    last_chapter = sanitize_for_prompt(data.last_chapter_summary, 500)
    if last_chapter:
        lines.append(f"Last Chapter: {last_chapter}")
    lines.append("")
    lines.append("Generate the Season Finale.")
    return "\n".join(lines)
