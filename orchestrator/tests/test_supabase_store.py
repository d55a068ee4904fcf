"""
Tests for SupabaseSagaStore against a mocked supabase-py client.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from core.errors import ChapterIndexConflict, StorageError
from services.supabase_persistence import SupabaseSagaStore


class FakeAPIError(Exception):
    """Mimics postgrest's APIError, which carries the Postgres error code."""

    def __init__(self, code, message="request failed"):
        super().__init__(message)
        self.code = code


def _query(data=None, count=None, error=None):
    query = MagicMock()
    for method in ("select", "eq", "gte", "order", "limit", "insert", "update"):
        getattr(query, method).return_value = query
    if error is not None:
        query.execute.side_effect = error
    else:
        query.execute.return_value = MagicMock(data=data, count=count)
    return query


def _store(query):
    client = MagicMock()
    client.table.return_value = query
    return SupabaseSagaStore("https://project.supabase.co", "service-key", client=client), client


CHAPTER_ROW = {
    "id": "c1",
    "goal_id": "g1",
    "user_id": "u1",
    "chapter_index": 2,
    "date": "2024-03-05",
    "outcome": "partial",
    "chapter_title": "Pending...",
}


class TestConnection:

    def test_injected_client_is_connected(self):
        store, _ = _store(_query())
        store.connect()
        assert store.is_connected

    def test_unconnected(self):
        assert not SupabaseSagaStore("https://project.supabase.co", "key").is_connected


class TestGoals:

    @pytest.mark.asyncio
    async def test_get_goal(self):
        query = _query(data=[{"id": "g1", "user_id": "u1", "title": "Run", "theme": "noir"}])
        store, client = _store(query)

        goal = await store.get_goal("g1")

        assert goal.id == "g1"
        assert goal.theme == "noir"
        client.table.assert_called_with("goals")
        query.eq.assert_called_with("id", "g1")

    @pytest.mark.asyncio
    async def test_missing_goal(self):
        store, _ = _store(_query(data=[]))
        assert await store.get_goal("g1") is None

    @pytest.mark.asyncio
    async def test_transport_error(self):
        store, _ = _store(_query(error=ConnectionError("reset")))
        with pytest.raises(StorageError):
            await store.get_goal("g1")

    @pytest.mark.asyncio
    async def test_malformed_row(self):
        store, _ = _store(_query(data=[{"id": "g1"}]))
        with pytest.raises(StorageError):
            await store.get_goal("g1")


class TestChapters:

    @pytest.mark.asyncio
    async def test_recent_chapters_query(self):
        query = _query(data=[CHAPTER_ROW])
        store, _ = _store(query)

        chapters = await store.get_recent_chapters("g1")

        assert [c.id for c in chapters] == ["c1"]
        query.order.assert_called_with("chapter_index", desc=True)
        query.limit.assert_called_with(2)

    @pytest.mark.asyncio
    async def test_insert_chapter(self):
        query = _query(data=[CHAPTER_ROW])
        store, _ = _store(query)

        chapter = await store.insert_chapter({"goal_id": "g1", "chapter_index": 2})

        assert chapter.chapter_index == 2
        assert chapter.date == "2024-03-05"

    @pytest.mark.asyncio
    async def test_unique_violation_is_conflict(self):
        store, _ = _store(_query(error=FakeAPIError("23505")))

        with pytest.raises(ChapterIndexConflict):
            await store.insert_chapter({"goal_id": "g1", "chapter_index": 2})

    @pytest.mark.asyncio
    async def test_other_insert_errors(self):
        store, _ = _store(_query(error=FakeAPIError("42501")))

        with pytest.raises(StorageError) as exc_info:
            await store.insert_chapter({"goal_id": "g1", "chapter_index": 2})

        assert not isinstance(exc_info.value, ChapterIndexConflict)

    @pytest.mark.asyncio
    async def test_update_chapter(self):
        query = _query(data=[{**CHAPTER_ROW, "image_url": "https://x/y.png"}])
        store, _ = _store(query)

        chapter = await store.update_chapter("c1", {"image_url": "https://x/y.png"})

        assert chapter.image_url == "https://x/y.png"
        query.update.assert_called_with({"image_url": "https://x/y.png"})


class TestUsageLedger:

    @pytest.mark.asyncio
    async def test_lifetime_count(self):
        query = _query(count=3)
        store, _ = _store(query)

        assert await store.count_usage_panels("u1") == 3
        query.select.assert_called_with("*", count="exact", head=True)
        query.gte.assert_not_called()

    @pytest.mark.asyncio
    async def test_windowed_count(self):
        query = _query(count=None)
        store, _ = _store(query)
        since = datetime(2024, 3, 1, tzinfo=timezone.utc)

        assert await store.count_usage_panels("u1", since=since) == 0
        query.gte.assert_called_with("created_at", "2024-03-01T00:00:00+00:00")

    @pytest.mark.asyncio
    async def test_record_usage(self):
        query = _query(data=[{}])
        store, client = _store(query)

        await store.record_usage_panel("u1", "g1", "c1")

        client.table.assert_called_with("usage_panels")
        query.insert.assert_called_with({"user_id": "u1", "goal_id": "g1", "chapter_id": "c1"})


class TestObjectStorage:

    @pytest.mark.asyncio
    async def test_upload_panel(self):
        store, client = _store(_query())
        bucket = client.storage.from_.return_value
        bucket.get_public_url.return_value = "https://cdn/panels/u1/g1/chapter_4.png"

        url = await store.upload_panel("u1/g1/chapter_4.png", b"png")

        assert url == "https://cdn/panels/u1/g1/chapter_4.png"
        client.storage.from_.assert_called_with("panels")
        bucket.upload.assert_called_with(
            "u1/g1/chapter_4.png", b"png", {"content-type": "image/png", "upsert": "true"}
        )

    @pytest.mark.asyncio
    async def test_upload_failure(self):
        store, client = _store(_query())
        client.storage.from_.return_value.upload.side_effect = RuntimeError("bucket missing")

        with pytest.raises(StorageError):
            await store.upload_panel("p.png", b"png")
