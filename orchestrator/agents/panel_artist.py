"""
Panel Artist for Habit Saga
Generates one comic panel per chapter with the Gemini image model.
"""

import base64
import binascii
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from agents.base import GeminiClient, PanelImageProvider, create_gemini_client
from config import GeminiConfig
from core.errors import GenerationError, PanelGenerationError
from models import PanelImageInput
from prompts import build_panel_prompt, resolve_theme

logger = logging.getLogger("orchestrator.agents.panel")

PANEL_ASPECT_RATIO = "1:1"


def _find_inline_image(data: Dict[str, Any]) -> Optional[str]:
    candidates = data.get("candidates") or []
    if not candidates:
        return None
    for part in (candidates[0].get("content") or {}).get("parts") or []:
        inline = part.get("inlineData") or part.get("inline_data") or {}
        if inline.get("data"):
            return inline["data"]
    return None


class GeminiPanelArtist(PanelImageProvider):
    """PanelImageProvider backed by the Gemini image model."""

    def __init__(self, client: GeminiClient):
        self.client = client

    @classmethod
    def from_config(cls, config: GeminiConfig, http_client: Optional[httpx.AsyncClient] = None) -> "GeminiPanelArtist":
        return cls(create_gemini_client(config, config.image_model, http_client=http_client))

    async def fetch_avatar(self, url: str) -> Optional[Tuple[str, str]]:
        """Return (base64 data, mime type), or None when the avatar can't be used."""
        response = await self.client.fetch_bytes(url)
        if response is None or not response.content:
            return None
        mime_type = response.headers.get("content-type", "image/jpeg").split(";")[0].strip() or "image/jpeg"
        return base64.b64encode(response.content).decode("ascii"), mime_type

    async def generate_panel(self, data: PanelImageInput) -> bytes:
        avatar = await self.fetch_avatar(data.avatar_url) if data.avatar_url else None
        prompt = build_panel_prompt(data, has_reference_image=avatar is not None)

        parts: List[Dict[str, Any]] = []
        if avatar is not None:
            parts.append({"inlineData": {"mimeType": avatar[1], "data": avatar[0]}})
        parts.append({"text": prompt})

        logger.info(
            f"[generate_panel] outcome={data.outcome.value}, theme={resolve_theme(data)}, "
            f"reference_image={avatar is not None}"
        )
        payload = {
            "contents": [{"parts": parts}],
            "generationConfig": {"imageConfig": {"aspectRatio": PANEL_ASPECT_RATIO}},
        }
        try:
            response = await self.client.generate_content(payload)
        except GenerationError as e:
            raise PanelGenerationError(f"Failed to generate panel image: {e}") from e

        image_b64 = _find_inline_image(response)
        if not image_b64:
            raise PanelGenerationError("No image data in Gemini response")
        try:
            return base64.b64decode(image_b64)
        except (binascii.Error, ValueError) as e:
            raise PanelGenerationError(f"Undecodable image data: {e}") from e
