"""
Habit Saga Prompts Module
System and user prompts for narrative, habit plan and panel generation.
"""

from .chapter import CHAPTER_SYSTEM_PROMPT, build_chapter_system_prompt, build_chapter_user_prompt
from .finale import FINALE_SYSTEM_PROMPT, build_finale_user_prompt
from .habit_plan import HABIT_PLAN_SYSTEM_PROMPT, build_habit_plan_user_prompt
from .origin import ORIGIN_SYSTEM_PROMPT, build_origin_user_prompt
from .panel import IMAGE_STYLE_PROMPTS, OUTCOME_MOODS, build_panel_prompt, detect_theme_from_profile, resolve_theme
from .themes import THEME_WRITING_PROMPTS, get_theme_prompt

__all__ = [
    "CHAPTER_SYSTEM_PROMPT",
    "build_chapter_system_prompt",
    "build_chapter_user_prompt",
    "FINALE_SYSTEM_PROMPT",
    "build_finale_user_prompt",
    "HABIT_PLAN_SYSTEM_PROMPT",
    "build_habit_plan_user_prompt",
    "ORIGIN_SYSTEM_PROMPT",
    "build_origin_user_prompt",
    "IMAGE_STYLE_PROMPTS",
    "OUTCOME_MOODS",
    "build_panel_prompt",
    "detect_theme_from_profile",
    "resolve_theme",
    "THEME_WRITING_PROMPTS",
    "get_theme_prompt",
]
