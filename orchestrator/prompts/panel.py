"""
Panel Image Prompt
Per-theme visual style, outcome mood and hero description for a single panel.
"""

from models import PanelImageInput
from services.security import sanitize_for_prompt

IMAGE_STYLE_PROMPTS = {
    "superhero": {
        "style": "Classic American comic book illustration style with bold ink lines, dynamic superhero poses, dramatic lighting with strong shadows, and vivid primary colors.",
        "medium": "comic book illustration",
    },
    "fantasy": {
        "style": "High-fantasy magical illustration style with ethereal lighting, soft glowing effects, detailed fantasy environments, and a rich jewel-tone palette.",
        "medium": "fantasy illustration",
    },
    "sci-fi": {
        "style": "Cyberpunk sci-fi graphic novel style with neon lighting, holographic UI elements, sleek metallic surfaces and dark futuristic cityscapes.",
        "medium": "sci-fi graphic novel illustration",
    },
    "anime": {
        "style": "Classic anime/manga illustration style with expressive character designs, dynamic speed lines, clean line art and vibrant saturated colors.",
        "medium": "anime/manga illustration",
    },
    "noir": {
        "style": "Film noir graphic novel style in high contrast black and white with selective color accents, dramatic chiaroscuro shadows and rain-slicked streets.",
        "medium": "noir graphic novel illustration",
    },
    "action_adventure": {
        "style": "Cinematic photorealistic style like a blockbuster action-adventure movie still, with dramatic golden hour lighting and epic landscapes.",
        "medium": "photorealistic cinematic film still",
    },
    "pop_regency": {
        "style": "Photorealistic Regency-era drama style with elegant period costumes, ornate ballroom settings, soft romantic lighting and a pastel palette.",
        "medium": "photorealistic period drama film still",
    },
    "custom": {
        "style": "Versatile illustrated style appropriate for the goal context, with clean composition and engaging visual storytelling.",
        "medium": "illustration",
    },
}

OUTCOME_MOODS = {
    "origin": "optimistic and hopeful, beginning of an epic journey",
    "completed": "triumphant and victorious, celebrating success",
    "partial": "determined and focused, making steady progress",
    "missed": "resilient and reflective, learning from setbacks",
}

# Checked in order; first match wins
_THEME_KEYWORDS = [
    ("superhero", ("superhero", "superpower")),
    ("fantasy", ("fantasy", "magic", "mythical")),
    ("sci-fi", ("sci-fi", "cyber", "futuristic")),
    ("anime", ("anime", "manga")),
    ("noir", ("noir", "detective", "mystery")),
    ("action_adventure", ("action", "adventure", "quest")),
    ("pop_regency", ("regency", "elegance", "romantic drama")),
]

AVATAR_REFERENCE_NOTE = (
    "IMPORTANT: Use the attached reference photo as the basis for the hero's appearance. "
    "The hero should closely resemble this person while transformed into the story's visual style."
)

SCENE_EXCERPT_LENGTH = 300


def detect_theme_from_profile(theme_profile: str) -> str:
    profile = (theme_profile or "").lower()
    for theme, keywords in _THEME_KEYWORDS:
        if any(k in profile for k in keywords):
            return theme
    return "custom"


def resolve_theme(data: PanelImageInput) -> str:
    theme = data.theme or detect_theme_from_profile(data.theme_profile)
    return theme if theme in IMAGE_STYLE_PROMPTS else "custom"


def build_panel_prompt(data: PanelImageInput, has_reference_image: bool) -> str:
    style = IMAGE_STYLE_PROMPTS[resolve_theme(data)]

    hero = f"Hero: {data.hero_profile}"
    if has_reference_image:
        hero += f"\n{AVATAR_REFERENCE_NOTE}"
    elif data.avatar_url:
        hero += "\nHero appearance should match their profile description."
    else:
        details = []
        if data.user_profile.name:
            details.append(f"name: {sanitize_for_prompt(data.user_profile.name, 50)}")
        if data.user_profile.age:
            details.append(f"age range: {sanitize_for_prompt(data.user_profile.age, 50)}")
        if data.user_profile.bio:
            details.append(f"background: {sanitize_for_prompt(data.user_profile.bio, 300)}")
        if details:
            hero += f"\nHero Identity: {', '.join(details)}. Make the hero's appearance appropriate for these characteristics."

    return f"""Generate a single {style['medium']} panel image.

VISUAL STYLE (CRITICAL - match this exactly):
{style['style']}

{hero}
Setting: {data.theme_profile}
Mood: {OUTCOME_MOODS[data.outcome.value]}
Chapter Title: "{data.chapter_title}"

Scene: {data.chapter_text[:SCENE_EXCERPT_LENGTH]}...

Composition requirements:
- Single panel/frame composition
- Include the chapter title "{data.chapter_title}" as stylized text integrated into the image design
- High quality, detailed {style['medium']}"""
