"""
Origin Story Prompt - Goal Creation Phase
Produces hero profile, theme profile and chapter 1 in a single call.
"""

from models import OriginStoryInput
from prompts.themes import get_theme_prompt
from services.security import sanitize_for_prompt

ORIGIN_SYSTEM_PROMPT = """You are a creative writer and narrative engine for a personalized habit-tracking comic.
Generate the origin story for a new saga. Return ONLY valid JSON with these exact keys:
- heroProfile: A 2-3 sentence description of the hero character (based on the selfie, goal, and user profile).
- themeProfile: A 2-3 sentence description of the world/setting (based on the selected theme).
- originChapterTitle: A short, engaging title for the first chapter (e.g., "The Awakening").
- originChapterText: A 3-5 paragraph origin narrative in which the hero accepts the quest of their goal.
- sagaSummaryShort: A 1-2 sentence summary of the saga so far.
- lastChapterSummary: A 1 sentence summary of the origin chapter.

Keep the tone engaging, appropriate for a comic book, and aligned with the theme."""


def build_origin_user_prompt(data: OriginStoryInput) -> str:
    lines = [
        f"Goal: {sanitize_for_prompt(data.goal_title)}",
        f"Theme: {get_theme_prompt(data.theme)}",
    ]
    optional = [
        ("Description", data.goal_description, 1000),
        ("Current Frequency", data.context.current_frequency, 200),
        ("Biggest Blocker", data.context.biggest_blocker, 300),
        ("Current Status", data.context.current_status, 200),
        ("Past Efforts", data.context.past_efforts, 300),
        ("Notes", data.context.notes, 500),
        ("User Name", data.user_profile.name, 50),
        ("User Age", data.user_profile.age, 50),
        ("User Bio", data.user_profile.bio, 300),
    ]
    for label, value, limit in optional:
        cleaned = sanitize_for_prompt(value, limit)
        if cleaned:
            lines.append(f"{label}: {cleaned}")
    if data.selfie_public_url:
        lines.append(f"Selfie URL: {data.selfie_public_url}")
    lines.append("")
    lines.append("Generate the origin story.")
    return "\n".join(lines)
