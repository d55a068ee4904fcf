"""
Tests for panel generation, both inside check-ins and on demand.
"""

import pytest

from core.chapter_image import generate_chapter_image
from core.errors import CheckInError, PanelGenerationError, StorageError
from core.panel_orchestrator import PanelGenerationOrchestrator, panel_storage_path
from models import UserRecord

from conftest import FakePanelArtist


async def _seeded(store, tier="free", image_url=None):
    store.add_user("u1", tier=tier, avatar_url="https://img.test/profile.png", display_name="Sam")
    store.add_goal("g1", "u1")
    chapter_id = store.add_chapter("g1", "u1", 4, image_url=image_url)
    goal = await store.get_goal("g1")
    chapter = await store.get_chapter(chapter_id)
    user = await store.get_user("u1")
    return goal, chapter, user


class TestPanelGenerationOrchestrator:

    def test_storage_path(self):
        assert panel_storage_path("u1", "g1", 7) == "u1/g1/chapter_7.png"

    @pytest.mark.asyncio
    async def test_build_input_prefers_explicit_avatar(self, store):
        goal, chapter, user = await _seeded(store)
        orchestrator = PanelGenerationOrchestrator(store, FakePanelArtist())

        data = orchestrator.build_input(goal, chapter, user, avatar_url="https://img.test/selfie.png")

        assert data.avatar_url == "https://img.test/selfie.png"
        assert data.theme == "superhero"
        assert data.chapter_title == "Title 4"
        assert data.user_profile.name == "Sam"

    @pytest.mark.asyncio
    async def test_build_input_without_any_avatar(self, store):
        goal, chapter, _ = await _seeded(store)
        orchestrator = PanelGenerationOrchestrator(store, FakePanelArtist())

        data = orchestrator.build_input(goal, chapter, UserRecord(id="u1"))

        assert data.avatar_url is None

    @pytest.mark.asyncio
    async def test_generate_uploads_attaches_and_records(self, store):
        goal, chapter, user = await _seeded(store)
        orchestrator = PanelGenerationOrchestrator(store, FakePanelArtist())

        url = await orchestrator.generate(goal, chapter, user)

        assert url == "https://storage.test/panels/u1/g1/chapter_4.png"
        assert store.chapters[chapter.id]["image_url"] == url
        assert store.usage_panels[0]["chapter_id"] == chapter.id
        assert store.usage_panels[0]["goal_id"] == "g1"

    @pytest.mark.asyncio
    async def test_generate_without_provider(self, store):
        goal, chapter, user = await _seeded(store)

        with pytest.raises(PanelGenerationError):
            await PanelGenerationOrchestrator(store, None).generate(goal, chapter, user)

    @pytest.mark.asyncio
    async def test_try_generate_swallows_upload_failure(self, store):
        goal, chapter, user = await _seeded(store)
        store.fail.add("upload_panel")

        result = await PanelGenerationOrchestrator(store, FakePanelArtist()).try_generate(goal, chapter, user)

        assert result.generated is False
        assert result.image_url is None
        assert store.usage_panels == []

    @pytest.mark.asyncio
    async def test_ledger_failure_detaches_image(self, store):
        goal, chapter, user = await _seeded(store)
        store.fail.add("record_usage_panel")

        with pytest.raises(StorageError):
            await PanelGenerationOrchestrator(store, FakePanelArtist()).generate(goal, chapter, user)

        assert store.chapters[chapter.id]["image_url"] is None
        assert store.usage_panels == []

    @pytest.mark.asyncio
    async def test_try_generate_swallows_unexpected_errors(self, store):
        goal, chapter, user = await _seeded(store)

        class BrokenArtist:
            async def generate_panel(self, data):
                raise RuntimeError("boom")

        result = await PanelGenerationOrchestrator(store, BrokenArtist()).try_generate(goal, chapter, user)

        assert result.generated is False


class TestGenerateChapterImage:

    @pytest.mark.asyncio
    async def test_generates_panel(self, store):
        _, chapter, _ = await _seeded(store)
        orchestrator = PanelGenerationOrchestrator(store, FakePanelArtist())

        result = await generate_chapter_image(store, orchestrator, "u1", chapter.id)

        assert result == {
            "success": True,
            "image_url": "https://storage.test/panels/u1/g1/chapter_4.png",
            "skipped": False,
        }

    @pytest.mark.asyncio
    async def test_existing_image_is_skipped(self, store):
        _, chapter, _ = await _seeded(store, image_url="https://storage.test/old.png")
        artist = FakePanelArtist()

        result = await generate_chapter_image(store, PanelGenerationOrchestrator(store, artist), "u1", chapter.id)

        assert result["skipped"] is True
        assert result["image_url"] == "https://storage.test/old.png"
        assert artist.calls == []

    @pytest.mark.asyncio
    async def test_missing_chapter(self, store):
        await _seeded(store)
        with pytest.raises(CheckInError) as exc_info:
            await generate_chapter_image(store, PanelGenerationOrchestrator(store, FakePanelArtist()), "u1", "nope")
        assert exc_info.value.code == "CHAPTER_NOT_FOUND"
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_other_users_chapter(self, store):
        _, chapter, _ = await _seeded(store)
        with pytest.raises(CheckInError) as exc_info:
            await generate_chapter_image(store, PanelGenerationOrchestrator(store, FakePanelArtist()), "u2", chapter.id)
        assert exc_info.value.code == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_quota_exceeded(self, store):
        _, chapter, _ = await _seeded(store, tier="free")
        store.add_usage("u1", 4)
        with pytest.raises(CheckInError) as exc_info:
            await generate_chapter_image(store, PanelGenerationOrchestrator(store, FakePanelArtist()), "u1", chapter.id)
        assert exc_info.value.code == "QUOTA_EXCEEDED"
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_provider_failure(self, store):
        _, chapter, _ = await _seeded(store)
        orchestrator = PanelGenerationOrchestrator(store, FakePanelArtist(fail=True))
        with pytest.raises(CheckInError) as exc_info:
            await generate_chapter_image(store, orchestrator, "u1", chapter.id)
        assert exc_info.value.code == "PANEL_GENERATION_ERROR"
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_store_failure(self, store):
        _, chapter, _ = await _seeded(store)
        store.fail.add("get_chapter")
        with pytest.raises(CheckInError) as exc_info:
            await generate_chapter_image(store, PanelGenerationOrchestrator(store, FakePanelArtist()), "u1", chapter.id)
        assert exc_info.value.code == "INTERNAL_ERROR"

    @pytest.mark.asyncio
    async def test_ledger_failure_is_a_generation_error(self, store):
        _, chapter, _ = await _seeded(store)
        store.fail.add("record_usage_panel")

        with pytest.raises(CheckInError) as exc_info:
            await generate_chapter_image(store, PanelGenerationOrchestrator(store, FakePanelArtist()), "u1", chapter.id)

        assert exc_info.value.code == "PANEL_GENERATION_ERROR"
        assert store.chapters[chapter.id]["image_url"] is None
