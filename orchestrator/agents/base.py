"""
Base Provider Implementation for Habit Saga
Provider interfaces and the Gemini REST client they share.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from config import GeminiConfig
from core.errors import GenerationError, MalformedOutputError
from models import (
    ChapterNarrative,
    FinaleInput,
    FinaleNarrative,
    HabitPlanInput,
    HabitTask,
    NarrativeContext,
    OriginStory,
    OriginStoryInput,
    PanelImageInput,
)

logger = logging.getLogger("orchestrator.agents")


class NarrativeProvider(ABC):
    """Text generation collaborator."""

    @abstractmethod
    async def generate_chapter(self, context: NarrativeContext) -> ChapterNarrative:
        """Raises GenerationError on provider error or malformed output."""
        pass

    @abstractmethod
    async def generate_origin_story(self, data: OriginStoryInput) -> OriginStory:
        pass

    @abstractmethod
    async def generate_habit_plan(self, data: HabitPlanInput) -> List[HabitTask]:
        pass

    @abstractmethod
    async def generate_finale(self, data: FinaleInput) -> FinaleNarrative:
        pass


class PanelImageProvider(ABC):
    """Image generation collaborator."""

    @abstractmethod
    async def generate_panel(self, data: PanelImageInput) -> bytes:
        """Return PNG bytes. Raises PanelGenerationError on failure."""
        pass


class GeminiClient:
    """Google Gemini generateContent REST client."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 90.0,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def generate_content(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST a generateContent payload and return the decoded response body."""
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key}
        try:
            if self._http_client is not None:
                response = await self._http_client.post(self.endpoint, json=payload, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.endpoint, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise GenerationError(f"Gemini request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(f"[generate_content] Gemini API error {response.status_code}: {response.text[:500]}")
            raise GenerationError(f"Gemini API error: {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise GenerationError(f"Gemini returned a non-JSON body: {e}") from e

    async def fetch_bytes(self, url: str) -> Optional[httpx.Response]:
        """GET an arbitrary URL (avatars). Returns None on any failure."""
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"[fetch_bytes] Could not fetch {url[:80]}: {e}")
            return None
        if response.status_code >= 400:
            logger.warning(f"[fetch_bytes] Could not fetch {url[:80]}: HTTP {response.status_code}")
            return None
        return response

    async def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.8,
        max_tokens: int = 2500,
    ) -> Any:
        """Generate with responseMimeType application/json and decode the first candidate."""
        payload = {
            "system_instruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": max_tokens,
                "responseMimeType": "application/json",
            },
        }
        data = await self.generate_content(payload)
        text = extract_candidate_text(data)
        if not text:
            raise GenerationError("No text generated from Gemini API")
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.error(f"[generate_json] Undecodable JSON (length {len(text)}), tail: {text[-100:]!r}")
            raise MalformedOutputError(f"Malformed JSON from Gemini: {e}") from e


def extract_candidate_text(data: Dict[str, Any]) -> Optional[str]:
    candidates = data.get("candidates") or []
    if not candidates:
        return None
    parts = (candidates[0].get("content") or {}).get("parts") or []
    for part in parts:
        if part.get("text"):
            return part["text"]
    return None


def create_gemini_client(
    config: GeminiConfig,
    model: str,
    http_client: Optional[httpx.AsyncClient] = None,
) -> GeminiClient:
    return GeminiClient(
        api_key=config.api_key.get_secret_value(),
        model=model,
        base_url=config.base_url,
        http_client=http_client,
    )
