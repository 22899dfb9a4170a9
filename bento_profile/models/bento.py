"""
Bento item data models.

A bento item is a grid rectangle plus a discriminated card type and a
type-specific content payload. Records written by older releases are accepted
on read (flat x/y/w/h, position/size objects, width/height, a legacy per-
breakpoint ``layout`` map, repository cards stored as ``github``); they are
normalized in memory only and never rewritten in place.
"""

from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .grid import GridPosition, GridRect, ResponsiveLayout, resolve_position


class BentoItemType(str, Enum):
    """Closed set of card types."""

    LINK = "link"
    TEXT = "text"
    IMAGE = "image"
    REPOSITORY = "repository"
    PEOPLE = "people"
    SECTION_TITLE = "section_title"
    NEED = "need"
    PLACEHOLDER = "placeholder"


# Older releases stored repository cards under their first platform name
LEGACY_TYPE_ALIASES: Dict[str, BentoItemType] = {
    "github": BentoItemType.REPOSITORY,
}


class CardSize(str, Enum):
    """Named footprints offered by the size toolbar."""

    SMALL = "small"
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    LARGE = "large"
    SQUARE = "square"


CARD_SIZE_DIMENSIONS: Dict[CardSize, Tuple[int, int]] = {
    CardSize.SMALL: (1, 2),
    CardSize.HORIZONTAL: (2, 2),
    CardSize.VERTICAL: (1, 4),
    CardSize.LARGE: (2, 4),
    CardSize.SQUARE: (2, 4),
}

NEED_BOARD_DIMENSIONS: Dict[CardSize, Tuple[int, int]] = {
    CardSize.HORIZONTAL: (4, 2),
    CardSize.SQUARE: (2, 4),
}

DEFAULT_DIMENSIONS: Dict[BentoItemType, Tuple[int, int]] = {
    BentoItemType.LINK: (2, 2),
    BentoItemType.TEXT: (1, 2),
    BentoItemType.IMAGE: (1, 2),
    BentoItemType.REPOSITORY: (2, 2),
    BentoItemType.PEOPLE: (2, 2),
    BentoItemType.SECTION_TITLE: (4, 1),
    BentoItemType.NEED: (4, 2),
    BentoItemType.PLACEHOLDER: (2, 2),
}


def card_size_dimensions(size: Optional[str]) -> Tuple[int, int]:
    """Map a card size name to (w, h); unknown names fall back to small."""
    try:
        return CARD_SIZE_DIMENSIONS[CardSize(str(size).lower())]
    except ValueError:
        return CARD_SIZE_DIMENSIONS[CardSize.SMALL]


def resolve_need_board_size(size: Optional[str]) -> CardSize:
    """Normalize need-board size aliases to horizontal or square."""
    normalized = size.lower() if isinstance(size, str) else ""
    if normalized in ("square", "vertical", "large"):
        return CardSize.SQUARE
    return CardSize.HORIZONTAL


def card_size_for(w: int, h: int) -> CardSize:
    """Inverse of card_size_dimensions for the sizes a toolbar can produce."""
    for size, dims in CARD_SIZE_DIMENSIONS.items():
        if dims == (w, h):
            return size
    return CardSize.SMALL


class ImageTransform(BaseModel):
    """Crop/zoom state for image cards."""

    model_config = ConfigDict(populate_by_name=True)

    scale: Optional[float] = None
    position_x: Optional[float] = Field(default=None, alias="positionX")
    position_y: Optional[float] = Field(default=None, alias="positionY")


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def normalize_item_type(value: Any) -> Any:
    """Lower-case a stored type name and map legacy aliases."""
    if value is None or value == "":
        return BentoItemType.TEXT
    if isinstance(value, str):
        return LEGACY_TYPE_ALIASES.get(value.lower(), value.lower())
    return value


class BentoItemDraft(BaseModel):
    """A card to be added; the adapter assigns its identifier."""

    model_config = ConfigDict(populate_by_name=True)

    type: BentoItemType
    content: Dict[str, Any] = Field(default_factory=dict)
    x: int = Field(default=0, ge=0)
    y: int = Field(default=0, ge=0)
    w: int = Field(default=1, ge=1)
    h: int = Field(default=1, ge=1)
    responsive: Optional[ResponsiveLayout] = None
    image_transform: Optional[ImageTransform] = Field(default=None, alias="imageTransform")

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        return normalize_item_type(v)


class BentoItem(GridRect):
    """A placed card owned by a profile."""

    model_config = ConfigDict(populate_by_name=True)

    type: BentoItemType = Field(default=BentoItemType.TEXT, description="Card type")
    content: Dict[str, Any] = Field(default_factory=dict, description="Type-specific payload")
    responsive: Optional[ResponsiveLayout] = Field(default=None, description="Per-breakpoint positions")
    layout: Optional[ResponsiveLayout] = Field(
        default=None, description="Legacy per-breakpoint positions (read-only compatibility)"
    )
    image_transform: Optional[ImageTransform] = Field(default=None, alias="imageTransform")

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        return normalize_item_type(v)

    @model_validator(mode="before")
    @classmethod
    def normalize_record(cls, data: Any) -> Any:
        """Flatten every historical record shape into x/y/w/h."""
        if not isinstance(data, dict):
            return data

        data = dict(data)
        position = _as_dict(data.pop("position", None))
        size = _as_dict(data.pop("size", None))
        layout = data.get("layout")

        rect: Dict[str, Any] = {}
        if isinstance(layout, dict) and "lg" not in layout and "sm" not in layout:
            # Document shape: layout holds the rectangle itself
            rect = data.pop("layout")

        data["x"] = _first(data.get("x"), position.get("x"), rect.get("x"), 0)
        data["y"] = _first(data.get("y"), position.get("y"), rect.get("y"), 0)
        data["w"] = _first(data.get("w"), data.pop("width", None), size.get("w"), rect.get("w"), 1)
        data["h"] = _first(data.get("h"), data.pop("height", None), size.get("h"), rect.get("h"), 1)

        if data.get("responsive") is None and position.get("responsive") is not None:
            data["responsive"] = position["responsive"]

        if data.get("content") is None:
            data["content"] = _as_dict(data.pop("metadata", None))
        else:
            data.pop("metadata", None)

        data["id"] = str(data.get("id") or "")
        return data

    def position_for(self, breakpoint) -> GridPosition:
        """Effective position for a breakpoint (see grid.resolve_position)."""
        return resolve_position(self, breakpoint)

    def to_record(self) -> Dict[str, Any]:
        """Serialize for the mutable store."""
        record = self.model_dump(mode="json", by_alias=True)
        for key in ("responsive", "layout", "imageTransform"):
            if record.get(key) is None:
                record.pop(key, None)
        return record


class BentoItemUpdate(BaseModel):
    """Partial update for an existing card.

    ``content`` is merged key by key into the existing payload; every other
    field replaces the stored value when given.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: Optional[BentoItemType] = None
    content: Optional[Dict[str, Any]] = None
    x: Optional[int] = Field(default=None, ge=0)
    y: Optional[int] = Field(default=None, ge=0)
    w: Optional[int] = Field(default=None, ge=1)
    h: Optional[int] = Field(default=None, ge=1)
    responsive: Optional[ResponsiveLayout] = None
    image_transform: Optional[ImageTransform] = Field(default=None, alias="imageTransform")

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        if v is None:
            return None
        return normalize_item_type(v)

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_fields(cls, data: Any) -> Any:
        """Accept width/height, position/size and metadata spellings."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        position = _as_dict(data.pop("position", None))
        size = _as_dict(data.pop("size", None))
        for key, value in (
            ("x", position.get("x")),
            ("y", position.get("y")),
            ("w", _first(data.pop("width", None), size.get("w"))),
            ("h", _first(data.pop("height", None), size.get("h"))),
        ):
            if data.get(key) is None and value is not None:
                data[key] = value
        if data.get("content") is None and isinstance(data.get("metadata"), dict):
            data["content"] = data["metadata"]
        data.pop("metadata", None)
        return data

    def apply_to(self, item: BentoItem) -> BentoItem:
        """Return a copy of ``item`` with this update applied."""
        changes = self.model_dump(exclude_unset=True, exclude_none=True, exclude={"content"})
        if self.content is not None:
            changes["content"] = {**item.content, **self.content}
        return BentoItem.model_validate({**item.model_dump(), **changes})
