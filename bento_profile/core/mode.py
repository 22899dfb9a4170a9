"""
Editor mode resolution and adapter selection.

The mode decides which storage adapter backs the session: a published build
serves the frozen document, and an explicit edit override on a published site
edits a local copy seeded from that document.
"""

import logging
from enum import Enum
from typing import Optional

from ..adapters import (
    JsonFileStore,
    LocalStoreAdapter,
    ProfileDataAdapter,
    StaticConfigAdapter,
)
from ..models import ProfileSnapshot
from .config import Settings
from .errors import MalformedSnapshotError, PersistenceError

logger = logging.getLogger(__name__)


class EditorMode(str, Enum):
    """Resolved editor mode."""

    PUBLISHED = "published"
    EDIT_ON_PUBLISHED = "edit_on_published"
    EDIT = "edit"


def resolve_mode(published_build: bool, mode_override: Optional[str] = None) -> EditorMode:
    """Resolve the editor mode from the build flag and the client override.

    Priority: an "edit" override always allows editing; otherwise a published
    build or a "preview" override shows the published view; otherwise edit.
    """
    override = (mode_override or "").strip().lower()
    if override == "edit":
        return EditorMode.EDIT_ON_PUBLISHED if published_build else EditorMode.EDIT
    if published_build or override == "preview":
        return EditorMode.PUBLISHED
    return EditorMode.EDIT


def is_published_mode(mode: EditorMode) -> bool:
    return mode == EditorMode.PUBLISHED


def is_edit_mode_on_published_site(mode: EditorMode) -> bool:
    return mode == EditorMode.EDIT_ON_PUBLISHED


def is_normal_edit_mode(mode: EditorMode) -> bool:
    return mode == EditorMode.EDIT


def _last_modified(snapshot: ProfileSnapshot) -> str:
    return snapshot.metadata.last_modified or ""


async def seed_local_store_from_static_config(
    local: LocalStoreAdapter,
    static: StaticConfigAdapter,
    refresh_if_newer: bool = False,
) -> bool:
    """Copy the published document into an empty local store.

    Args:
        local: Mutable store to seed
        static: Published document source
        refresh_if_newer: Also re-import when the published document's
            lastModified is newer than the local one

    Returns:
        True if the local store was written

    Failures are logged and swallowed; the editor then starts from whatever
    the local store holds.
    """
    async with local.seed_lock:
        try:
            has_document = local.has_document()
            if has_document and not refresh_if_newer:
                logger.debug("Local store already has a profile, skipping seed")
                return False

            snapshot = await static.load_config()
            if snapshot.is_empty():
                logger.debug("Published profile is empty, nothing to seed")
                return False

            if has_document:
                local_metadata = await local.get_metadata()
                local_modified = local_metadata.last_modified if local_metadata else ""
                if _last_modified(snapshot) <= local_modified:
                    logger.debug("Local profile is up to date with the published one")
                    return False
                logger.info("Published profile is newer than local copy, refreshing")

            await local.import_config(snapshot)
            logger.info(f"Seeded local store from published profile ({len(snapshot.items)} card(s))")
            return True

        except (MalformedSnapshotError, PersistenceError, OSError) as e:
            logger.warning(f"Failed to seed local store from published profile: {e}")
            return False


def build_local_adapter(settings: Settings) -> LocalStoreAdapter:
    return LocalStoreAdapter(
        store=JsonFileStore(settings.store_path),
        namespace=settings.namespace,
        site_prefix=settings.site_prefix,
    )


def build_static_adapter(settings: Settings) -> StaticConfigAdapter:
    return StaticConfigAdapter(path=settings.static_config_path)


async def create_adapter(
    mode: EditorMode,
    settings: Settings,
    local: Optional[LocalStoreAdapter] = None,
    static: Optional[StaticConfigAdapter] = None,
) -> ProfileDataAdapter:
    """Pick and prepare the adapter for a mode.

    Args:
        mode: Resolved editor mode
        settings: Session settings (paths, namespace, force_adapter)
        local: Pre-built local adapter (default: built from settings)
        static: Pre-built static adapter (default: built from settings)

    Returns:
        Ready-to-use adapter; the static one is already loaded and the local
        one already seeded when editing a published site.

    Raises:
        MalformedSnapshotError: If the published document is invalid in published mode
    """
    if settings.force_adapter == "static" or (settings.force_adapter is None and is_published_mode(mode)):
        static = static or build_static_adapter(settings)
        await static.load_config()
        logger.info(f"Using {static.get_adapter_name()} (mode={mode.value})")
        return static

    local = local or build_local_adapter(settings)
    if settings.force_adapter is None and is_edit_mode_on_published_site(mode):
        await seed_local_store_from_static_config(local, static or build_static_adapter(settings))
    logger.info(f"Using {local.get_adapter_name()} (mode={mode.value})")
    return local
