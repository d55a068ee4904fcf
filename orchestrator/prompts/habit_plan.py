"""
Habit Plan Prompt - Goal Creation Phase
Implementation intentions, habit stacking and tiny habits.
"""

from models import HabitPlanInput
from services.security import sanitize_for_prompt

HABIT_PLAN_SYSTEM_PROMPT = """You are an expert habit coach trained in behavior design, implementation intentions, and habit stacking.

Your task: Generate 1-3 specific, actionable habit tasks to help the user achieve their goal.

PRINCIPLES TO FOLLOW:
1. **Tiny Habits**: Start very small - tasks should be easy enough to do even on a difficult day
2. **Implementation Intentions**: Use "if-then" format: "If it is [TIME] and I am [LOCATION], then I will [ACTION]"
3. **Habit Stacking**: When possible, anchor new habits to existing routines: "After I [EXISTING HABIT], I will [NEW HABIT]"
4. **Frequency**: Match the goal's cadence (daily/3x per week/weekly)

Return a JSON array of tasks with this exact structure:
[
  {
    "label": "string",
    "tiny_version": "string",
    "full_version": "string",
    "cue_type": "time_location" | "habit_stack",
    "if_then": "string",
    "habit_stack": "string or null",
    "suggested_frequency": "daily" | "three_per_week" | "weekly",
    "difficulty": number
  }
]"""

CUE_PERSONALIZATION_NOTE = (
    "IMPORTANT: When generating implementation intentions (if-then statements) and habit stacks, "
    "incorporate the user's specified time window and location to make them concrete and personalized."
)


def build_habit_plan_user_prompt(data: HabitPlanInput) -> str:
    cadence = data.cadence.type.value
    if data.cadence.details:
        cadence = f"{cadence} ({sanitize_for_prompt(data.cadence.details, 200)})"

    lines = [
        f"Goal: {sanitize_for_prompt(data.goal_text)}",
        f"Cadence: {cadence}",
        f"Target Date: {sanitize_for_prompt(data.target_date, 50)}",
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
        ("Preferred Time Window", data.time_window, 100),
        ("Typical Location", data.location, 100),
    ]
    for label, value, limit in optional:
        cleaned = sanitize_for_prompt(value, limit)
        if cleaned:
            lines.append(f"{label}: {cleaned}")
    if data.time_window or data.location:
        lines.append(CUE_PERSONALIZATION_NOTE)
    lines.append("")
    lines.append("Generate a habit plan with 1-3 specific tasks.")
    return "\n".join(lines)
