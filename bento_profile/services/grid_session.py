"""
Bento grid editing session.

Holds the working set (profile + cards) for one profile, places new cards,
applies drag/resize results and content edits, and feeds every change to the
auto-save coordinator. Placement works on effective positions so records
written before per-breakpoint layouts existed are laid out without being
rewritten.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..adapters import ProfileDataAdapter
from ..core.config import DEFAULT_AUTOSAVE_DELAY_MS
from ..core.errors import DuplicateItemError, ItemNotFoundError, ReadOnlyError
from ..core.placement import Viewport, breakpoint_for, plan_dual_layout, shift_for_insert
from ..models import (
    BentoItem,
    BentoItemDraft,
    BentoItemType,
    Breakpoint,
    CardSize,
    DEFAULT_DIMENSIONS,
    GridPosition,
    GridRect,
    NEED_BOARD_DIMENSIONS,
    ProfileData,
    ProfileSnapshot,
    ProfileUpdate,
    ResponsiveLayout,
    SnapshotMetadata,
    card_size_dimensions,
    effective_rect,
    resolve_need_board_size,
    resolve_position,
    utc_now_iso,
)
from .auto_save import AutoSaveCoordinator, AutoSaveStatus, compute_fingerprint
from .events import (
    AUTOSAVE_STATUS,
    ITEM_ADDED,
    ITEM_DELETED,
    ITEM_UPDATED,
    PROFILE_UPDATED,
    EventChannel,
)
from .metadata import MetadataService, parse_repository_url

logger = logging.getLogger(__name__)


def default_layout(item: BentoItem) -> ResponsiveLayout:
    """Effective positions of an item for both breakpoints."""
    return ResponsiveLayout(
        lg=resolve_position(item, Breakpoint.LG),
        sm=resolve_position(item, Breakpoint.SM),
    )


def _normalize_url(url: str) -> str:
    return url.strip().rstrip("/").lower()


def _repository_key(content: Mapping[str, Any]) -> Optional[tuple]:
    owner = content.get("owner")
    repo = content.get("repo")
    platform = content.get("platform") or "github"
    if not owner or not repo:
        parsed = parse_repository_url(str(content.get("url") or ""))
        if parsed is None:
            return None
        platform, owner, repo = parsed
    return (str(platform).lower(), str(owner).lower(), str(repo).lower())


class BentoGridSession:
    """Working set and edit operations for one profile."""

    def __init__(
        self,
        adapter: ProfileDataAdapter,
        events: Optional[EventChannel] = None,
        viewport: Optional[Viewport] = None,
        auto_save_delay_ms: int = DEFAULT_AUTOSAVE_DELAY_MS,
        metadata: Optional[MetadataService] = None,
    ):
        """Initialize the session.

        Args:
            adapter: Storage adapter selected for the current mode
            events: Channel receiving change notifications (default: private channel)
            viewport: Current viewport; None places new cards below existing ones
            auto_save_delay_ms: Quiet period before an automatic save
            metadata: Lookup service for link titles and repository details
        """
        self.adapter = adapter
        self.events = events if events is not None else EventChannel()
        self.viewport = viewport
        self.metadata = metadata
        self.profile: Optional[ProfileData] = None
        self.items: List[BentoItem] = []
        self.document_metadata = SnapshotMetadata()
        self.loaded = False
        self.auto_save = AutoSaveCoordinator(
            self._save_working_set,
            delay_ms=auto_save_delay_ms,
            on_status_change=self._on_auto_save_status,
        )

    # Session state

    @property
    def read_only(self) -> bool:
        return self.adapter.read_only

    @property
    def breakpoint(self) -> Breakpoint:
        return breakpoint_for(self.viewport)

    def set_viewport(self, viewport: Optional[Viewport]) -> Breakpoint:
        """Record a new viewport; returns the breakpoint now active."""
        previous = self.breakpoint
        self.viewport = viewport
        if self.breakpoint != previous:
            logger.debug(f"Breakpoint changed: {previous.value} -> {self.breakpoint.value}")
        return self.breakpoint

    async def load(self) -> List[BentoItem]:
        """Read profile and cards from the adapter, replacing the working set."""
        self.auto_save.reset()
        self.profile = await self.adapter.get_profile()
        self.items = await self.adapter.get_bento_items()
        self.document_metadata = self.adapter.export_config().metadata
        self.loaded = True
        logger.info(
            f"Loaded {len(self.items)} card(s) from {self.adapter.get_adapter_name()}"
            f"{' (read-only)' if self.read_only else ''}"
        )
        return list(self.items)

    def layout_for(self, item_id: str) -> ResponsiveLayout:
        """Per-breakpoint positions of a card, defaulted for records without them."""
        item = self._find(item_id)
        return item.responsive if item.responsive is not None else default_layout(item)

    def position_of(self, item_id: str, breakpoint: Optional[Breakpoint] = None) -> GridPosition:
        return resolve_position(self._find(item_id), breakpoint or self.breakpoint)

    def _find(self, item_id: str) -> BentoItem:
        for item in self.items:
            if item.id == item_id:
                return item
        raise ItemNotFoundError(item_id)

    def _replace(self, updated: BentoItem) -> None:
        for index, item in enumerate(self.items):
            if item.id == updated.id:
                self.items[index] = updated
                return
        raise ItemNotFoundError(updated.id)

    def _ensure_writable(self, operation: str) -> None:
        if self.read_only:
            raise ReadOnlyError(operation, self.adapter.get_adapter_name())

    # Auto-save wiring

    def fingerprint(self) -> str:
        return compute_fingerprint(self.profile, self.items)

    def has_content(self) -> bool:
        return bool(self.items) or self.profile is not None

    def _changed(self) -> None:
        self.auto_save.update(
            self.fingerprint(),
            has_content=self.has_content(),
            is_active=self.loaded and not self.read_only,
        )

    async def _save_working_set(self, fingerprint: str) -> None:
        metadata = self.document_metadata.model_copy(update={"last_modified": utc_now_iso()})
        snapshot = ProfileSnapshot.build(self.profile, self.items, metadata)
        await self.adapter.import_config(snapshot)
        self.document_metadata = metadata
        logger.debug(f"Saved working set {fingerprint[:12]} ({len(self.items)} card(s))")

    def _on_auto_save_status(self, status: AutoSaveStatus) -> None:
        error = self.auto_save.last_error
        self.events.publish(AUTOSAVE_STATUS, status=status.value, error=str(error) if error else None)

    async def save_now(self) -> AutoSaveStatus:
        """Persist the working set immediately."""
        self._ensure_writable("save")
        self.auto_save.update(self.fingerprint(), has_content=self.has_content(), is_active=True)
        await self.auto_save.trigger_save()
        return self.auto_save.status

    async def close(self) -> None:
        await self.auto_save.close()

    # Profile

    async def update_profile(self, patch: Mapping[str, Any]) -> ProfileData:
        self._ensure_writable("update_profile")
        update = ProfileUpdate.model_validate(dict(patch))
        now = utc_now_iso()
        self.profile = update.apply_to(self.profile or ProfileData(created_at=now), updated_at=now)
        self.events.publish(PROFILE_UPDATED, fields=sorted(update.model_fields_set))
        self._changed()
        return self.profile

    # Adding cards

    def _check_duplicate(self, draft: BentoItemDraft) -> None:
        if draft.type == BentoItemType.LINK and draft.content.get("url"):
            url = _normalize_url(str(draft.content["url"]))
            for item in self.items:
                if item.type == BentoItemType.LINK and _normalize_url(str(item.content.get("url") or "")) == url:
                    raise DuplicateItemError(f"Link already on the grid: {draft.content['url']}")
        elif draft.type == BentoItemType.REPOSITORY:
            key = _repository_key(draft.content)
            if key is None:
                return
            for item in self.items:
                if item.type == BentoItemType.REPOSITORY and _repository_key(item.content) == key:
                    raise DuplicateItemError(f"Repository already on the grid: {'/'.join(key[1:])}")

    def _footprint(self, draft: BentoItemDraft) -> tuple:
        if draft.type == BentoItemType.NEED:
            return NEED_BOARD_DIMENSIONS[resolve_need_board_size(draft.content.get("size"))]
        w, h = draft.w, draft.h
        if "w" not in draft.model_fields_set and "h" not in draft.model_fields_set:
            w, h = DEFAULT_DIMENSIONS[draft.type]
        return max(1, min(w, self.breakpoint.columns)), max(1, h)

    async def _make_room(self, position: GridPosition, w: int, h: int) -> None:
        """Push cards down in the active layout if a new card would overlap them."""
        rects = [effective_rect(item, self.breakpoint) for item in self.items]
        footprint = GridRect(x=position.x, y=position.y, w=w, h=h)
        if not any(rect.overlaps(footprint) for rect in rects):
            return
        shifted = shift_for_insert(rects, position, w, h)
        if shifted:
            await self._commit_layout([self._moved(self._find(rect.id), rect.x, rect.y) for rect in shifted])

    async def add_item(
        self,
        draft: Any,
        preferred_position: Optional[GridPosition] = None,
    ) -> BentoItem:
        """Place and persist a new card.

        Args:
            draft: BentoItemDraft or a mapping with type/content/w/h
            preferred_position: Explicit position in the active breakpoint
                (drop target); skips the placement search for that breakpoint

        Returns:
            The stored card with its assigned identifier

        Raises:
            ReadOnlyError: In published mode
            DuplicateItemError: If the same link or repository is already present
        """
        self._ensure_writable("add_item")
        if not isinstance(draft, BentoItemDraft):
            draft = BentoItemDraft.model_validate(dict(draft))
        self._check_duplicate(draft)

        w, h = self._footprint(draft)
        responsive, position = plan_dual_layout(self.items, w, h, self.viewport)
        if preferred_position is not None:
            position = preferred_position
            responsive = responsive.with_position(self.breakpoint, position)

        await self._make_room(position, w, h)
        placed = draft.model_copy(update={"x": position.x, "y": position.y, "w": w, "h": h, "responsive": responsive})
        item = await self.adapter.add_bento_item(placed)
        self.items.append(item)
        logger.info(f"Placed {item.type.value} card {item.id} ({w}x{h}) at ({position.x}, {position.y}) [{self.breakpoint.value}]")
        self.events.publish(ITEM_ADDED, item_id=item.id, type=item.type.value, x=position.x, y=position.y)
        self._changed()
        return item

    async def add_link(self, url: str, w: Optional[int] = None, h: Optional[int] = None) -> BentoItem:
        content: Dict[str, Any] = {"url": url}
        if self.metadata is not None:
            content = await self.metadata.link_content(url)
        return await self.add_item(self._draft(BentoItemType.LINK, content, w, h))

    async def add_text(self, text: str, w: Optional[int] = None, h: Optional[int] = None) -> BentoItem:
        return await self.add_item(self._draft(BentoItemType.TEXT, {"text": text}, w, h))

    async def add_image(self, src: str, alt: str = "", size: Optional[str] = None) -> BentoItem:
        w, h = card_size_dimensions(size) if size else DEFAULT_DIMENSIONS[BentoItemType.IMAGE]
        return await self.add_item(self._draft(BentoItemType.IMAGE, {"src": src, "alt": alt}, w, h))

    async def add_repository(self, url: str) -> BentoItem:
        parsed = parse_repository_url(url)
        if parsed is None:
            raise ValueError(f"Not a repository URL: {url}")
        platform, owner, repo = parsed
        content: Dict[str, Any] = {"url": url, "platform": platform, "owner": owner, "repo": repo}
        if self.metadata is not None:
            details = await self.metadata.repository(platform, owner, repo)
            if details:
                content.update({k: v for k, v in details.items() if k not in content})
        return await self.add_item(self._draft(BentoItemType.REPOSITORY, content, None, None))

    async def add_section_title(self, title: str) -> BentoItem:
        return await self.add_item(self._draft(BentoItemType.SECTION_TITLE, {"title": title}, None, None))

    async def add_need_board(self, size: str = CardSize.HORIZONTAL.value) -> BentoItem:
        """Add the need board (at most one per profile)."""
        if any(item.type == BentoItemType.NEED for item in self.items):
            raise DuplicateItemError("Need board already added")
        normalized = resolve_need_board_size(size)
        return await self.add_item(self._draft(BentoItemType.NEED, {"size": normalized.value}, None, None))

    @staticmethod
    def _draft(item_type: BentoItemType, content: Dict[str, Any], w: Optional[int], h: Optional[int]) -> BentoItemDraft:
        data: Dict[str, Any] = {"type": item_type, "content": content}
        if w is not None:
            data["w"] = w
        if h is not None:
            data["h"] = h
        return BentoItemDraft.model_validate(data)

    # Editing cards

    def _moved(self, item: BentoItem, x: int, y: int) -> BentoItem:
        position = GridPosition(x=x, y=y)
        base = item.responsive if item.responsive is not None else default_layout(item)
        responsive = base.with_position(self.breakpoint, position)
        return item.model_copy(update={"x": x, "y": y, "responsive": responsive})

    async def move_item(self, item_id: str, x: int, y: int) -> BentoItem:
        """Move a card within the active breakpoint's layout."""
        self._ensure_writable("move_item")
        if x < 0 or y < 0:
            raise ValueError(f"Position must be non-negative, got ({x}, {y})")
        moved = self._moved(self._find(item_id), x, y)
        self._replace(moved)
        self.events.publish(ITEM_UPDATED, item_id=item_id, x=x, y=y)
        self._changed()
        return moved

    async def resize_item(self, item_id: str, size: str) -> BentoItem:
        """Resize a card to a named card size preset."""
        self._ensure_writable("resize_item")
        item = self._find(item_id)
        if item.type == BentoItemType.NEED:
            normalized = resolve_need_board_size(size)
            w, h = NEED_BOARD_DIMENSIONS[normalized]
            content = {**item.content, "size": normalized.value}
        else:
            w, h = card_size_dimensions(size)
            content = item.content
        w = min(w, self.breakpoint.columns)
        resized = item.model_copy(update={"w": w, "h": h, "content": content})
        self._replace(resized)
        self.events.publish(ITEM_UPDATED, item_id=item_id, w=w, h=h)
        self._changed()
        return resized

    async def update_content(self, item_id: str, changes: Mapping[str, Any]) -> BentoItem:
        """Merge ``changes`` into a card's content payload."""
        self._ensure_writable("update_content")
        item = self._find(item_id)
        updated = item.model_copy(update={"content": {**item.content, **dict(changes)}})
        self._replace(updated)
        self.events.publish(ITEM_UPDATED, item_id=item_id, content=sorted(changes))
        self._changed()
        return updated

    async def _commit_layout(self, changed: Sequence[BentoItem]) -> None:
        """Persist new geometry for several cards in one write, then adopt it."""
        updates: List[Dict[str, Any]] = []
        for item in changed:
            update: Dict[str, Any] = {"id": item.id, "x": item.x, "y": item.y, "w": item.w, "h": item.h}
            if item.responsive is not None:
                update["responsive"] = item.responsive.model_dump(mode="json")
            updates.append(update)
        await self.adapter.batch_update_positions(updates)
        for item in changed:
            self._replace(item)
            self.events.publish(ITEM_UPDATED, item_id=item.id, x=item.x, y=item.y)

    async def apply_layout_change(self, layout: Sequence[Mapping[str, Any]]) -> int:
        """Apply a batch of drag/resize results for the active breakpoint.

        The whole batch is validated before anything changes; an invalid
        entry leaves both the working set and storage untouched.

        Args:
            layout: Entries with ``id`` and the new ``x``/``y``/``w``/``h``

        Returns:
            Number of cards whose position or size changed

        Raises:
            ValueError: If an entry has a negative position or a size below 1
        """
        self._ensure_writable("apply_layout_change")
        changed: List[BentoItem] = []
        for entry in layout:
            item_id = str(entry.get("id", entry.get("i", "")))
            try:
                item = self._find(item_id)
            except ItemNotFoundError:
                logger.debug(f"Layout entry for unknown card {item_id} ignored")
                continue
            current = resolve_position(item, self.breakpoint)
            x = int(entry.get("x", current.x))
            y = int(entry.get("y", current.y))
            w = int(entry.get("w", item.w))
            h = int(entry.get("h", item.h))
            if x < 0 or y < 0 or w < 1 or h < 1:
                raise ValueError(f"Invalid layout for card {item_id}: ({x}, {y}) {w}x{h}")
            if (x, y, w, h) == (current.x, current.y, item.w, item.h):
                continue
            changed.append(self._moved(item, x, y).model_copy(update={"w": w, "h": h}))

        if changed:
            await self._commit_layout(changed)
            self._changed()
        return len(changed)

    async def delete_item(self, item_id: str) -> None:
        self._ensure_writable("delete_item")
        self._find(item_id)
        await self.adapter.delete_bento_item(item_id)
        self.items = [item for item in self.items if item.id != item_id]
        self.events.publish(ITEM_DELETED, item_id=item_id)
        self._changed()
