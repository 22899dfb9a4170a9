"""
Local store adapter.

Read-write adapter backed by a key/value store (JSON file on disk, or memory).
The profile, the card list and the document metadata live under three keys;
every mutation reads the current value, applies the change in memory and
writes the result back in one store update, so a subsequent read always sees
a complete document.
"""

import asyncio
import json
import logging
import time
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from ..core.errors import ItemNotFoundError, PersistenceError
from ..models import (
    BentoItem,
    ProfileData,
    ProfileSnapshot,
    SnapshotMetadata,
    utc_now_iso,
)
from .base import (
    ItemInput,
    ItemPatch,
    ProfileDataAdapter,
    ProfilePatch,
    SnapshotInput,
    as_item_draft,
    as_item_update,
    as_profile_update,
    parse_snapshot,
)
from .stores import KeyValueStore, MemoryStore

logger = logging.getLogger(__name__)

STORAGE_KEYS = {
    "profile": "profile:profile",
    "items": "profile:bento-items",
    "metadata": "profile:metadata",
}


def generate_item_id() -> str:
    """Identifier for a new card: "<epoch ms>-<9 hex chars>"."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class LocalStoreAdapter(ProfileDataAdapter):
    """Mutable profile storage."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        namespace: str = "profile",
        site_prefix: str = "",
    ):
        """Initialize the adapter.

        Args:
            store: Backing key/value store (default: in-memory)
            namespace: Key namespace for this profile
            site_prefix: Per-site prefix isolating several deployments sharing one store
        """
        self.store: KeyValueStore = store if store is not None else MemoryStore()
        self.namespace = f"{site_prefix}:{namespace}" if site_prefix else namespace
        # Guards check-then-copy seeding within this process
        self.seed_lock = asyncio.Lock()

    def get_adapter_name(self) -> str:
        return "LocalStoreAdapter"

    def _key(self, name: str) -> str:
        return f"{self.namespace}:{STORAGE_KEYS[name]}"

    # Raw store access

    def _read_json(self, name: str) -> Any:
        raw = self.store.get(self._key(name))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt {name} entry in local store, ignoring it: {e}")
            return None

    def _write(self, values: Mapping[str, Any]) -> None:
        """Write several documents in one store update.

        Raises:
            PersistenceError: If serialization or the store write fails
        """
        changes: Dict[str, Optional[str]] = {}
        try:
            for name, value in values.items():
                changes[self._key(name)] = None if value is None else json.dumps(value)
            if "metadata" not in values:
                metadata = self._read_metadata() or SnapshotMetadata()
                metadata.last_modified = utc_now_iso()
                changes[self._key("metadata")] = json.dumps(metadata.model_dump(mode="json", by_alias=True))
            self.store.update(changes)
        except (TypeError, ValueError, OSError) as e:
            logger.error(f"Failed to write local store ({', '.join(values)}): {e}")
            raise PersistenceError(f"Failed to write local store: {e}") from e

    def _read_profile(self) -> Optional[ProfileData]:
        data = self._read_json("profile")
        if not isinstance(data, dict):
            return None
        try:
            return ProfileData.model_validate(data)
        except ValidationError as e:
            logger.error(f"Stored profile is invalid, ignoring it: {e}")
            return None

    def _read_items(self) -> List[BentoItem]:
        data = self._read_json("items")
        if not isinstance(data, list):
            return []
        items: List[BentoItem] = []
        for record in data:
            try:
                items.append(BentoItem.model_validate(record))
            except ValidationError as e:
                logger.warning(f"Skipping invalid stored bento item: {e}")
        return items

    def _read_metadata(self) -> Optional[SnapshotMetadata]:
        data = self._read_json("metadata")
        if not isinstance(data, dict):
            return None
        try:
            return SnapshotMetadata.model_validate(data)
        except ValidationError:
            return None

    def _write_items(self, items: Sequence[BentoItem]) -> None:
        self._write({"items": [item.to_record() for item in items]})

    # Adapter information

    async def is_available(self) -> bool:
        probe = f"{self.namespace}:test"
        try:
            self.store.update({probe: "test"})
            self.store.update({probe: None})
            return True
        except OSError as e:
            logger.warning(f"Local store unavailable: {e}")
            return False

    def has_document(self) -> bool:
        """True if a profile or card list has ever been written."""
        return (
            self.store.get(self._key("profile")) is not None
            or self.store.get(self._key("items")) is not None
        )

    # Profile operations

    async def get_profile(self) -> Optional[ProfileData]:
        return self._read_profile()

    async def update_profile(self, patch: ProfilePatch) -> None:
        update = as_profile_update(patch)
        now = utc_now_iso()
        existing = self._read_profile() or ProfileData(created_at=now)
        updated = update.apply_to(existing, updated_at=now)
        self._write({"profile": updated.to_document()})
        logger.debug(f"Updated profile fields: {sorted(update.model_fields_set)}")

    # Bento grid operations

    async def get_bento_items(self) -> List[BentoItem]:
        return self._read_items()

    async def add_bento_item(self, item: ItemInput) -> BentoItem:
        draft = as_item_draft(item)
        new_item = BentoItem.model_validate(
            {**draft.model_dump(exclude_none=True), "id": generate_item_id()}
        )
        items = self._read_items()
        items.append(new_item)
        self._write_items(items)
        logger.info(f"Added {new_item.type.value} card {new_item.id} at ({new_item.x}, {new_item.y})")
        return new_item

    async def update_bento_item(self, item_id: str, patch: ItemPatch) -> None:
        update = as_item_update(patch)
        items = self._read_items()
        for index, existing in enumerate(items):
            if existing.id == item_id:
                items[index] = update.apply_to(existing)
                break
        else:
            raise ItemNotFoundError(item_id)
        self._write_items(items)
        logger.debug(f"Updated card {item_id}: {sorted(update.model_fields_set)}")

    async def batch_update_positions(self, updates: Sequence[Mapping[str, Any]]) -> None:
        items = self._read_items()
        index_by_id = {item.id: index for index, item in enumerate(items)}
        applied = 0
        for update in updates:
            index = index_by_id.get(str(update.get("id")))
            if index is None:
                continue
            geometry = {key: update[key] for key in ("x", "y", "w", "h", "responsive") if key in update}
            items[index] = as_item_update(geometry).apply_to(items[index])
            applied += 1
        if applied:
            self._write_items(items)
        logger.debug(f"Batch updated {applied}/{len(updates)} card positions")

    async def delete_bento_item(self, item_id: str) -> None:
        items = self._read_items()
        remaining = [item for item in items if item.id != item_id]
        if len(remaining) == len(items):
            logger.debug(f"Delete of unknown card {item_id} ignored")
            return
        self._write_items(remaining)
        logger.info(f"Deleted card {item_id}")

    # Metadata

    async def get_metadata(self) -> Optional[SnapshotMetadata]:
        return self._read_metadata()

    async def update_metadata(self, metadata: SnapshotMetadata) -> None:
        self._write({"metadata": metadata.model_dump(mode="json", by_alias=True)})

    async def clear(self) -> None:
        """Remove the whole document from the store."""
        self._write({"profile": None, "items": None, "metadata": None})

    # Export/import

    def export_config(self) -> ProfileSnapshot:
        return ProfileSnapshot.build(
            profile=self._read_profile(),
            items=self._read_items(),
            metadata=self._read_metadata(),
        )

    async def import_config(self, snapshot: SnapshotInput) -> None:
        parsed = parse_snapshot(snapshot, source="import")
        self._write(
            {
                "profile": parsed.profile.to_document(),
                "items": [item.to_record() for item in parsed.bento_items()],
                "metadata": parsed.metadata.model_dump(mode="json", by_alias=True),
            }
        )
        logger.info(f"Imported profile document with {len(parsed.items)} card(s)")
