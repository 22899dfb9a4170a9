# Data models for grid placement, bento cards and the persisted profile document

from .grid import (
    Breakpoint,
    GridPosition,
    GridRect,
    ResponsiveLayout,
    effective_rect,
    has_responsive_layout,
    resolve_position,
)
from .bento import (
    BentoItem,
    BentoItemDraft,
    BentoItemType,
    BentoItemUpdate,
    CardSize,
    CARD_SIZE_DIMENSIONS,
    DEFAULT_DIMENSIONS,
    NEED_BOARD_DIMENSIONS,
    ImageTransform,
    card_size_dimensions,
    card_size_for,
    resolve_need_board_size,
)
from .profile import ProfileData, ProfileUpdate
from .snapshot import (
    DOCUMENT_VERSION,
    BentoGridSection,
    ProfileSnapshot,
    SnapshotItem,
    SnapshotLayout,
    SnapshotMetadata,
    utc_now_iso,
)

__all__ = [
    "Breakpoint",
    "GridPosition",
    "GridRect",
    "ResponsiveLayout",
    "effective_rect",
    "has_responsive_layout",
    "resolve_position",
    "BentoItem",
    "BentoItemDraft",
    "BentoItemType",
    "BentoItemUpdate",
    "CardSize",
    "CARD_SIZE_DIMENSIONS",
    "DEFAULT_DIMENSIONS",
    "NEED_BOARD_DIMENSIONS",
    "ImageTransform",
    "card_size_dimensions",
    "card_size_for",
    "resolve_need_board_size",
    "ProfileData",
    "ProfileUpdate",
    "DOCUMENT_VERSION",
    "BentoGridSection",
    "ProfileSnapshot",
    "SnapshotItem",
    "SnapshotLayout",
    "SnapshotMetadata",
    "utc_now_iso",
]
