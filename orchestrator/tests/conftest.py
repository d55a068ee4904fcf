"""
Pytest configuration and fixtures for orchestrator tests.

This module provides:
- Network blocking fixture to prevent accidental API calls in CI
- An in-memory SagaStore and scripted AI providers
"""

import socket
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import patch

import pytest

from core.errors import ChapterIndexConflict, GenerationError, PanelGenerationError, StorageError
from models import (
    Chapter,
    ChapterNarrative,
    Encouragement,
    FinaleNarrative,
    Goal,
    HabitTask,
    OriginStory,
    UsagePanel,
    UserRecord,
)
from services.supabase_persistence import SagaStore


class NetworkBlockedError(Exception):
    """Raised when a test attempts to make a network connection."""
    pass


def _block_socket_connect(*args, **kwargs):
    """Block all socket connections to prevent accidental API calls."""
    raise NetworkBlockedError(
        "Network access is blocked in unit tests. "
        "If you need to test network functionality, use mocks. "
        "This prevents accidental Gemini or Supabase calls from CI."
    )


@pytest.fixture(autouse=True)
def block_network():
    """
    Automatically block all network connections in tests.

    If a test needs to make real network calls (integration tests),
    it should be marked with @pytest.mark.integration and run separately.
    """
    with patch.object(socket.socket, 'connect', _block_socket_connect):
        with patch.object(socket, 'create_connection', _block_socket_connect):
            yield


# ============================================================================
# In-memory store
# ============================================================================

class InMemorySagaStore(SagaStore):
    """SagaStore over plain dicts. `fail` names methods that raise StorageError."""

    def __init__(self):
        self.goals: Dict[str, Dict[str, Any]] = {}
        self.users: Dict[str, Dict[str, Any]] = {}
        self.chapters: Dict[str, Dict[str, Any]] = {}
        self.usage_panels: List[Dict[str, Any]] = []
        self.uploads: Dict[str, bytes] = {}
        self.moderation_logs: List[Dict[str, Any]] = []
        self.fail: set = set()
        # chapter inserts that should report a unique violation before succeeding
        self.index_conflicts = 0

    def _check(self, name: str) -> None:
        if name in self.fail:
            raise StorageError(f"{name} failed")

    # seeding helpers

    def add_user(self, user_id: str, tier: str = "free", **fields) -> None:
        self.users[user_id] = {"id": user_id, "subscription_tier": tier, **fields}

    def add_goal(self, goal_id: str, user_id: str, **fields) -> None:
        row = {
            "id": goal_id,
            "user_id": user_id,
            "title": "Run a 5k",
            "theme": "superhero",
            "status": "active",
            "hero_profile": "A tireless runner.",
            "theme_profile": "A city of heroes.",
            "saga_summary_short": "The runner began training.",
            "last_chapter_summary": "The runner laced up.",
        }
        row.update(fields)
        self.goals[goal_id] = row

    def add_chapter(self, goal_id: str, user_id: str, index: int, **fields) -> str:
        chapter_id = fields.pop("id", str(uuid.uuid4()))
        row = {
            "id": chapter_id,
            "goal_id": goal_id,
            "user_id": user_id,
            "chapter_index": index,
            "date": "2024-03-01",
            "outcome": "origin" if index == 1 else "completed",
            "chapter_title": f"Title {index}",
            "chapter_text": f"Text {index}",
            "image_url": None,
        }
        row.update(fields)
        self.chapters[chapter_id] = row
        return chapter_id

    def add_usage(self, user_id: str, count: int, created_at: Optional[datetime] = None) -> None:
        for _ in range(count):
            self.usage_panels.append({
                "user_id": user_id,
                "goal_id": None,
                "chapter_id": str(uuid.uuid4()),
                "created_at": created_at or datetime.now(timezone.utc),
            })

    # SagaStore

    async def get_goal(self, goal_id):
        self._check("get_goal")
        row = self.goals.get(goal_id)
        return Goal.model_validate(row) if row else None

    async def insert_goal(self, data):
        self._check("insert_goal")
        row = {"id": str(uuid.uuid4()), **data}
        self.goals[row["id"]] = row
        return Goal.model_validate(row)

    async def update_goal(self, goal_id, fields):
        self._check("update_goal")
        if goal_id not in self.goals:
            return None
        self.goals[goal_id].update(fields)
        return Goal.model_validate(self.goals[goal_id])

    async def get_user(self, user_id):
        self._check("get_user")
        row = self.users.get(user_id)
        return UserRecord.model_validate(row) if row else None

    async def get_recent_chapters(self, goal_id, limit=2):
        self._check("get_recent_chapters")
        rows = sorted(
            (c for c in self.chapters.values() if c["goal_id"] == goal_id),
            key=lambda c: c["chapter_index"],
            reverse=True,
        )
        return [Chapter.model_validate(r) for r in rows[:limit]]

    async def get_chapter(self, chapter_id):
        self._check("get_chapter")
        row = self.chapters.get(chapter_id)
        return Chapter.model_validate(row) if row else None

    async def insert_chapter(self, data):
        self._check("insert_chapter")
        if self.index_conflicts > 0:
            self.index_conflicts -= 1
            # another writer took this index in the meantime
            self.add_chapter(data["goal_id"], data["user_id"], data["chapter_index"])
            raise ChapterIndexConflict("duplicate key value violates unique constraint")
        for row in self.chapters.values():
            if row["goal_id"] == data["goal_id"] and row["chapter_index"] == data["chapter_index"]:
                raise ChapterIndexConflict("duplicate key value violates unique constraint")
        row = {"id": str(uuid.uuid4()), "created_at": datetime.now(timezone.utc).isoformat(), **data}
        self.chapters[row["id"]] = row
        return Chapter.model_validate(row)

    async def update_chapter(self, chapter_id, fields):
        self._check("update_chapter")
        if chapter_id not in self.chapters:
            return None
        self.chapters[chapter_id].update(fields)
        return Chapter.model_validate(self.chapters[chapter_id])

    async def count_usage_panels(self, user_id, since=None):
        self._check("count_usage_panels")
        return sum(
            1 for row in self.usage_panels
            if row["user_id"] == user_id and (since is None or row["created_at"] >= since)
        )

    async def record_usage_panel(self, user_id, goal_id, chapter_id):
        self._check("record_usage_panel")
        row = UsagePanel(user_id=user_id, goal_id=goal_id, chapter_id=chapter_id, created_at=datetime.now(timezone.utc))
        self.usage_panels.append(row.model_dump())

    async def upload_panel(self, path, image_bytes):
        self._check("upload_panel")
        self.uploads[path] = image_bytes
        return f"https://storage.test/panels/{path}"

    async def log_moderation(self, entry):
        self._check("log_moderation")
        self.moderation_logs.append(entry)


# ============================================================================
# Scripted providers
# ============================================================================

def make_narrative(title: str = "Chapter 2: The Climb") -> ChapterNarrative:
    return ChapterNarrative(
        chapter_title=title,
        chapter_text="The hero climbed the tower.",
        new_saga_summary_short="The hero is rising.",
        new_last_chapter_summary="The hero climbed.",
        encouragement=Encouragement(headline="Nice!", body="You showed up."),
        micro_plan="Run again tomorrow.",
    )


class FakeNarrativeProvider:
    """Fails `failures` times, then returns `narrative`."""

    def __init__(self, narrative: Optional[ChapterNarrative] = None, failures: int = 0):
        self.narrative = narrative or make_narrative()
        self.failures = failures
        self.chapter_calls = []
        self.origin = OriginStory(
            hero_profile="A brave runner.",
            theme_profile="A neon city.",
            origin_chapter_title="The Awakening",
            origin_chapter_text="It began at dawn.",
            saga_summary_short="A runner set out.",
            last_chapter_summary="The runner woke.",
        )
        self.origin_error: Optional[Exception] = None
        self.habit_plan_error: Optional[Exception] = None
        self.habit_plan = [
            HabitTask(id="h1", label="Run", tiny_version="Walk 5 min", full_version="Run 20 min"),
        ]
        self.finale = FinaleNarrative(
            finale_chapter_title="The Last Lap",
            finale_chapter_text="The runner crossed the line.",
            final_saga_summary="A runner trained and finished the race.",
            celebration=Encouragement(headline="Finished!", body="You ran the 5k."),
        )
        self.finale_error: Optional[Exception] = None
        self.finale_calls = []

    async def generate_chapter(self, context):
        self.chapter_calls.append(context)
        if len(self.chapter_calls) <= self.failures:
            raise GenerationError("provider unavailable")
        return self.narrative

    async def generate_origin_story(self, data):
        if self.origin_error:
            raise self.origin_error
        return self.origin

    async def generate_habit_plan(self, data):
        if self.habit_plan_error:
            raise self.habit_plan_error
        return self.habit_plan

    async def generate_finale(self, data):
        self.finale_calls.append(data)
        if self.finale_error:
            raise self.finale_error
        return self.finale


class FakePanelArtist:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    async def generate_panel(self, data):
        self.calls.append(data)
        if self.fail:
            raise PanelGenerationError("image model unavailable")
        return b"\x89PNG fake"


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def store():
    return InMemorySagaStore()


@pytest.fixture
def narrative_provider():
    return FakeNarrativeProvider()


@pytest.fixture
def panel_artist():
    return FakePanelArtist()
