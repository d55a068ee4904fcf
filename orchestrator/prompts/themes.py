"""
Theme descriptions shared by the narrative and panel prompts.
action_adventure and pop_regency read like film/TV; the rest like comics.
"""

THEME_WRITING_PROMPTS = {
    "superhero": """Title: Comic Superhero
Description: A classic comic book world of heroes, villains, and superpowers.
Writing Style: Write with bold, heroic comic book prose. Use punchy dialogue, dramatic internal monologue, and action-packed descriptions with triumphant language and larger-than-life moments.""",

    "fantasy": """Title: Magical Fantasy
Description: A high-fantasy world of magic, mythical creatures, and epic quests.
Writing Style: Write with rich, evocative fantasy prose. Use poetic descriptions, mystical terminology, and a sense of ancient wonder.""",

    "sci-fi": """Title: Cyber Sci-Fi
Description: A futuristic sci-fi world of advanced technology, neon lights, and cybernetics.
Writing Style: Write with sleek, technological prose. Use cyberpunk vernacular and descriptions of digital and mechanical elements in sharp, modern language.""",

    "anime": """Title: Classic Anime
Description: A high-energy anime style world with dramatic battles and emotional moments.
Writing Style: Write with expressive, dynamic anime prose. Use dramatic exclamations, intense emotional beats, and vivid action descriptions.""",

    "noir": """Title: Mystery Noir
Description: A dark, moody world of shadows, detectives, and solving mysteries.
Writing Style: Write in hard-boiled detective prose. Use terse sentences, cynical observations, and metaphors about shadows, rain, and city streets.""",

    "action_adventure": """Title: Action Adventure
Description: A thrilling world of daring heroes, epic quests, and pulse-pounding action sequences.
Writing Style: Write like a blockbuster action-adventure movie. Use cinematic descriptions with dramatic pacing, witty one-liners, and globe-trotting stakes.""",

    "pop_regency": """Title: Pop Regency
Description: A glamorous world of refined elegance, witty social intrigue, and romantic drama.
Writing Style: Write like a Regency-era romance drama. Use elegant, witty prose with sharp social observations and period-appropriate flourishes.""",

    "custom": """Title: Custom
Description: A unique world based on the user's specific goal.
Writing Style: Write with engaging, versatile prose appropriate for the goal context. Maintain a motivating and narrative-driven tone.""",
}


def get_theme_prompt(theme: str) -> str:
    return THEME_WRITING_PROMPTS.get(theme, THEME_WRITING_PROMPTS["custom"])
