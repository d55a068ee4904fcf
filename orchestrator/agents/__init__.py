"""
Habit Saga Agents Module
AI providers for narrative and panel generation.
"""

from .base import (
    GeminiClient,
    NarrativeProvider,
    PanelImageProvider,
    create_gemini_client,
)
from .narrative_agents import GeminiNarrativeProvider
from .panel_artist import GeminiPanelArtist

__all__ = [
    "GeminiClient",
    "NarrativeProvider",
    "PanelImageProvider",
    "create_gemini_client",
    "GeminiNarrativeProvider",
    "GeminiPanelArtist",
]
