"""
Grid data models for bento card placement.

Coordinates are grid cells, not pixels. ``w``/``h`` are cell spans shared by
every breakpoint; only the ``x``/``y`` placement differs between the 4-column
("lg") and 2-column ("sm") layouts.
"""

from enum import Enum
from typing import Any, Iterator, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class Breakpoint(str, Enum):
    """Responsive layout keys."""

    LG = "lg"
    SM = "sm"

    @property
    def columns(self) -> int:
        return 4 if self is Breakpoint.LG else 2

    @property
    def other(self) -> "Breakpoint":
        return Breakpoint.SM if self is Breakpoint.LG else Breakpoint.LG


class GridPosition(BaseModel):
    """Cell-addressed top-left corner."""

    model_config = ConfigDict(frozen=True)

    x: int = Field(default=0, ge=0)
    y: int = Field(default=0, ge=0)

    def as_tuple(self) -> Tuple[int, int]:
        return (self.x, self.y)


class GridRect(BaseModel):
    """Cell-addressed rectangle occupied by a grid item."""

    id: str = Field(default="", description="Item identifier")
    x: int = Field(default=0, ge=0, description="Column index")
    y: int = Field(default=0, ge=0, description="Row index")
    w: int = Field(default=1, ge=1, description="Column span")
    h: int = Field(default=1, ge=1, description="Row span")

    @property
    def right(self) -> int:
        return self.x + self.w

    @property
    def bottom(self) -> int:
        return self.y + self.h

    def cells(self) -> Iterator[Tuple[int, int]]:
        """Yield every (x, y) cell covered by this rectangle."""
        for row in range(self.y, self.bottom):
            for col in range(self.x, self.right):
                yield (col, row)

    def overlaps(self, other: "GridRect") -> bool:
        """True if the two rectangles share at least one cell."""
        return (
            self.x < other.right
            and other.x < self.right
            and self.y < other.bottom
            and other.y < self.bottom
        )


class ResponsiveLayout(BaseModel):
    """Independent positions per breakpoint (sizes live on the item)."""

    lg: Optional[GridPosition] = None
    sm: Optional[GridPosition] = None

    def get(self, breakpoint: Breakpoint) -> Optional[GridPosition]:
        return getattr(self, Breakpoint(breakpoint).value)

    def with_position(self, breakpoint: Breakpoint, position: GridPosition) -> "ResponsiveLayout":
        return self.model_copy(update={Breakpoint(breakpoint).value: position})


def _lookup(source: Any, key: str) -> Any:
    if source is None:
        return None
    if isinstance(source, Mapping):
        return source.get(key)
    return getattr(source, key, None)


def _coerce_position(value: Any) -> Optional[GridPosition]:
    if value is None:
        return None
    if isinstance(value, GridPosition):
        return value
    x = _lookup(value, "x")
    y = _lookup(value, "y")
    if x is None and y is None:
        return None
    try:
        return GridPosition(x=int(x or 0), y=int(y or 0))
    except (TypeError, ValueError):
        return None


def _responsive_source(item: Any) -> Any:
    responsive = _lookup(item, "responsive")
    if responsive is None:
        # Stored records keep it under position.responsive
        responsive = _lookup(_lookup(item, "position"), "responsive")
    return responsive


def resolve_position(item: Any, breakpoint: Union[Breakpoint, str]) -> GridPosition:
    """Resolve an item's effective position for a breakpoint.

    Priority: responsive entry, then legacy layout entry, then the item's own
    bare x/y. Accepts model instances and raw stored records alike and never
    raises; anything unresolvable yields (0, 0).
    """
    try:
        key = Breakpoint(breakpoint).value
    except ValueError:
        key = None

    if key is not None:
        position = _coerce_position(_lookup(_responsive_source(item), key))
        if position is not None:
            return position

        position = _coerce_position(_lookup(_lookup(item, "layout"), key))
        if position is not None:
            return position

    for source in (item, _lookup(item, "position"), _lookup(item, "layout")):
        position = _coerce_position(source)
        if position is not None:
            return position

    return GridPosition(x=0, y=0)


def has_responsive_layout(item: Any) -> bool:
    """True if the item carries a responsive map or a legacy layout map."""
    if _responsive_source(item) is not None:
        return True
    legacy = _lookup(item, "layout")
    if legacy is None:
        return False
    return _lookup(legacy, "lg") is not None or _lookup(legacy, "sm") is not None


def effective_rect(item: Any, breakpoint: Union[Breakpoint, str]) -> GridRect:
    """Footprint of an item at its resolved position for a breakpoint.

    Cards wider than the breakpoint's column count span the full row, the
    way the rendered grid lays them out.
    """
    position = resolve_position(item, breakpoint)
    w = max(1, int(_lookup(item, "w") or _lookup(_lookup(item, "size"), "w") or 1))
    h = _lookup(item, "h") or _lookup(_lookup(item, "size"), "h") or 1
    try:
        w = min(w, Breakpoint(breakpoint).columns)
    except ValueError:
        pass
    return GridRect(
        id=str(_lookup(item, "id") or ""),
        x=position.x,
        y=position.y,
        w=w,
        h=max(1, int(h)),
    )
