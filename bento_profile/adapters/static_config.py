"""
Static config adapter.

Read-only adapter over the pre-baked profile document that a published build
ships next to the site. The document is fetched once and kept in memory;
concurrent first reads share a single load. Every mutating operation raises
ReadOnlyError before touching anything.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence

from ..core.errors import MalformedSnapshotError, ReadOnlyError
from ..models import BentoItem, ProfileData, ProfileSnapshot
from .base import (
    ItemInput,
    ItemPatch,
    ProfileDataAdapter,
    ProfilePatch,
    SnapshotInput,
    parse_snapshot,
)

logger = logging.getLogger(__name__)

# Returns the raw document, or None when there is none (404)
SnapshotLoader = Callable[[], Awaitable[Optional[Any]]]


def file_loader(path: Path) -> SnapshotLoader:
    """Loader reading a JSON document from disk; a missing file yields None."""
    path = Path(path).expanduser()

    async def load() -> Optional[Any]:
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError
            raise MalformedSnapshotError(f"Invalid JSON: {e}", str(path)) from e

    return load


class StaticConfigAdapter(ProfileDataAdapter):
    """Read-only view of a published profile document."""

    def __init__(
        self,
        path: Optional[Path] = None,
        loader: Optional[SnapshotLoader] = None,
    ):
        """Initialize the adapter.

        Args:
            path: JSON document to read (ignored when ``loader`` is given)
            loader: Coroutine factory returning the raw document or None
        """
        if loader is None and path is None:
            raise ValueError("StaticConfigAdapter needs a path or a loader")
        self.path = Path(path) if path is not None else None
        self._loader: SnapshotLoader = loader if loader is not None else file_loader(self.path)
        self._config: Optional[ProfileSnapshot] = None
        self._load_task: Optional[asyncio.Task] = None
        self.load_count = 0

    def get_adapter_name(self) -> str:
        return "StaticConfigAdapter"

    @property
    def read_only(self) -> bool:
        return True

    @property
    def source(self) -> str:
        return str(self.path) if self.path is not None else "static loader"

    async def load_config(self) -> ProfileSnapshot:
        """Fetch the document once; concurrent callers await the same load.

        Returns:
            Cached snapshot (empty snapshot if the document does not exist)

        Raises:
            MalformedSnapshotError: If the document exists but is invalid
        """
        if self._config is not None:
            return self._config

        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._load())

        task = self._load_task
        try:
            self._config = await asyncio.shield(task)
        except Exception:
            # Allow a later call to retry after the document is fixed
            if self._load_task is task:
                self._load_task = None
            raise
        return self._config

    async def _load(self) -> ProfileSnapshot:
        self.load_count += 1
        raw = await self._loader()
        if raw is None:
            logger.info(f"No published profile at {self.source}, using empty profile")
            return ProfileSnapshot()
        snapshot = parse_snapshot(raw, source=self.source)
        logger.info(f"Loaded published profile from {self.source} ({len(snapshot.items)} card(s))")
        return snapshot

    def reset_cache(self) -> None:
        """Forget the loaded document so the next read fetches it again."""
        self._config = None
        self._load_task = None

    # Adapter information

    async def is_available(self) -> bool:
        try:
            await self.load_config()
            return True
        except MalformedSnapshotError as e:
            logger.warning(f"Published profile unavailable: {e}")
            return False

    # Profile operations

    async def get_profile(self) -> Optional[ProfileData]:
        config = await self.load_config()
        return config.profile.model_copy(deep=True)

    async def update_profile(self, patch: ProfilePatch) -> None:
        raise ReadOnlyError("update_profile")

    # Bento grid operations

    async def get_bento_items(self) -> List[BentoItem]:
        config = await self.load_config()
        return config.bento_items()

    async def add_bento_item(self, item: ItemInput) -> BentoItem:
        raise ReadOnlyError("add_bento_item")

    async def update_bento_item(self, item_id: str, patch: ItemPatch) -> None:
        raise ReadOnlyError("update_bento_item")

    async def batch_update_positions(self, updates: Sequence[Mapping[str, Any]]) -> None:
        raise ReadOnlyError("batch_update_positions")

    async def delete_bento_item(self, item_id: str) -> None:
        raise ReadOnlyError("delete_bento_item")

    # Export/import

    def export_config(self) -> ProfileSnapshot:
        """Copy of the loaded document (empty if not loaded yet)."""
        if self._config is None:
            return ProfileSnapshot()
        return self._config.model_copy(deep=True)

    async def import_config(self, snapshot: SnapshotInput) -> None:
        raise ReadOnlyError("import_config")
