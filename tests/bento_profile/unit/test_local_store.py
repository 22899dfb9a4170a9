"""Unit tests for the mutable local store adapter."""

import json
import re

import pytest

from bento_profile.adapters import LocalStoreAdapter, MemoryStore
from bento_profile.adapters.local_store import generate_item_id
from bento_profile.core.errors import ItemNotFoundError, MalformedSnapshotError, PersistenceError
from bento_profile.models import BentoItemType, ProfileUpdate


class FailingStore(MemoryStore):
    """Store whose writes always fail (quota exceeded, read-only disk)."""

    def update(self, changes):
        raise OSError("No space left on device")


class TestKeys:
    def test_key_layout(self, memory_store):
        adapter = LocalStoreAdapter(store=memory_store, namespace="profile", site_prefix="liz-test")
        assert adapter._key("items") == "liz-test:profile:profile:bento-items"

    @pytest.mark.asyncio
    async def test_site_prefix_isolates_profiles(self, memory_store):
        first = LocalStoreAdapter(store=memory_store, site_prefix="site-a")
        second = LocalStoreAdapter(store=memory_store, site_prefix="site-b")
        await first.add_bento_item({"type": "text", "content": {"text": "a"}})
        assert len(await first.get_bento_items()) == 1
        assert await second.get_bento_items() == []

    def test_generated_id_format(self):
        assert re.fullmatch(r"\d{13}-[0-9a-f]{9}", generate_item_id())


class TestProfileOperations:
    @pytest.mark.asyncio
    async def test_empty_store(self, local_adapter):
        assert await local_adapter.get_profile() is None
        assert await local_adapter.get_bento_items() == []
        assert not local_adapter.has_document()

    @pytest.mark.asyncio
    async def test_update_creates_profile(self, local_adapter):
        await local_adapter.update_profile({"name": "Liz", "researchInterests": ["grids"]})
        profile = await local_adapter.get_profile()
        assert profile.name == "Liz"
        assert profile.research_interests == ["grids"]
        assert profile.created_at is not None
        assert profile.updated_at is not None

    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_fields(self, local_adapter):
        await local_adapter.update_profile(ProfileUpdate(name="Liz", bio="Researcher"))
        await local_adapter.update_profile({"bio": "Engineer"})
        profile = await local_adapter.get_profile()
        assert profile.name == "Liz"
        assert profile.bio == "Engineer"

    @pytest.mark.asyncio
    async def test_stored_with_camel_case_keys(self, local_adapter, memory_store):
        await local_adapter.update_profile({"social_links": {"github": "liz"}})
        raw = json.loads(memory_store.get("profile:profile:profile"))
        assert raw["socialLinks"] == {"github": "liz"}


class TestBentoItemOperations:
    @pytest.mark.asyncio
    async def test_add_assigns_id(self, local_adapter):
        item = await local_adapter.add_bento_item({"type": "link", "content": {"url": "https://a.example"}, "w": 2, "h": 2})
        assert item.id
        stored = await local_adapter.get_bento_items()
        assert [i.id for i in stored] == [item.id]
        assert stored[0].type == BentoItemType.LINK

    @pytest.mark.asyncio
    async def test_update_merges_content(self, local_adapter):
        item = await local_adapter.add_bento_item({"type": "link", "content": {"url": "https://a.example"}})
        await local_adapter.update_bento_item(item.id, {"content": {"title": "A"}, "x": 2})
        updated = (await local_adapter.get_bento_items())[0]
        assert updated.content == {"url": "https://a.example", "title": "A"}
        assert updated.x == 2

    @pytest.mark.asyncio
    async def test_update_unknown_id_raises(self, local_adapter):
        with pytest.raises(ItemNotFoundError) as exc_info:
            await local_adapter.update_bento_item("missing", {"x": 1})
        assert "missing" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, local_adapter):
        item = await local_adapter.add_bento_item({"type": "text"})
        await local_adapter.delete_bento_item(item.id)
        await local_adapter.delete_bento_item(item.id)
        assert await local_adapter.get_bento_items() == []

    @pytest.mark.asyncio
    async def test_batch_update_positions(self, local_adapter):
        a = await local_adapter.add_bento_item({"type": "text", "x": 0, "y": 0})
        b = await local_adapter.add_bento_item({"type": "text", "x": 1, "y": 0})
        await local_adapter.batch_update_positions(
            [
                {"id": a.id, "x": 2, "y": 1, "w": 1, "h": 2},
                {"id": b.id, "x": 0, "y": 3, "responsive": {"lg": {"x": 0, "y": 3}}},
                {"id": "unknown", "x": 1, "y": 1},
            ]
        )
        items = {i.id: i for i in await local_adapter.get_bento_items()}
        assert (items[a.id].x, items[a.id].y, items[a.id].h) == (2, 1, 2)
        assert (items[b.id].x, items[b.id].y) == (0, 3)
        assert items[b.id].responsive.lg.y == 3

    @pytest.mark.asyncio
    async def test_mutations_bump_last_modified(self, local_adapter):
        await local_adapter.update_metadata(
            (await local_adapter.get_metadata() or local_adapter.export_config().metadata).model_copy(
                update={"last_modified": "2000-01-01T00:00:00.000Z"}
            )
        )
        await local_adapter.add_bento_item({"type": "text"})
        metadata = await local_adapter.get_metadata()
        assert metadata.last_modified > "2000-01-01T00:00:00.000Z"

    @pytest.mark.asyncio
    async def test_invalid_stored_item_skipped(self, local_adapter, memory_store):
        memory_store.set(
            "profile:profile:bento-items",
            json.dumps([{"id": "ok", "type": "text"}, {"id": "bad", "type": "hologram"}]),
        )
        assert [i.id for i in await local_adapter.get_bento_items()] == ["ok"]

    @pytest.mark.asyncio
    async def test_corrupt_json_reads_as_empty(self, local_adapter, memory_store):
        memory_store.set("profile:profile:bento-items", "{not json")
        assert await local_adapter.get_bento_items() == []


class TestFailures:
    @pytest.mark.asyncio
    async def test_write_failure_raises_persistence_error(self):
        adapter = LocalStoreAdapter(store=FailingStore())
        with pytest.raises(PersistenceError):
            await adapter.add_bento_item({"type": "text"})

    @pytest.mark.asyncio
    async def test_unavailable_store(self):
        assert await LocalStoreAdapter(store=FailingStore()).is_available() is False
        assert await LocalStoreAdapter().is_available() is True

    @pytest.mark.asyncio
    async def test_import_rejects_malformed_document(self, local_adapter):
        with pytest.raises(MalformedSnapshotError):
            await local_adapter.import_config({"bentoGrid": {"items": [{"id": "a", "type": "nope"}]}})
        with pytest.raises(MalformedSnapshotError):
            await local_adapter.import_config(["not", "a", "document"])


class TestExportImport:
    @pytest.mark.asyncio
    async def test_round_trip_is_lossless(self, local_adapter, sample_document):
        await local_adapter.import_config(sample_document)
        exported = local_adapter.export_config().to_document()

        other = LocalStoreAdapter(store=MemoryStore())
        await other.import_config(exported)
        assert other.export_config().to_document() == exported

    @pytest.mark.asyncio
    async def test_import_preserves_ids_and_metadata(self, local_adapter, sample_document):
        await local_adapter.import_config(sample_document)
        exported = local_adapter.export_config().to_document()
        assert [i["id"] for i in exported["bentoGrid"]["items"]] == [
            i["id"] for i in sample_document["bentoGrid"]["items"]
        ]
        assert exported["metadata"]["lastModified"] == "2025-06-01T12:00:00.000Z"
        # Legacy type alias normalized on read
        assert exported["bentoGrid"]["items"][2]["type"] == "repository"

    @pytest.mark.asyncio
    async def test_clear(self, local_adapter, sample_document):
        await local_adapter.import_config(sample_document)
        assert local_adapter.has_document()
        await local_adapter.clear()
        assert not local_adapter.has_document()
        assert local_adapter.export_config().items == []
