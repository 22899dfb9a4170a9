"""Placement engine for new bento cards.

Finds the first empty cell rectangle of a requested size, preferring the rows
currently visible in the viewport so a freshly added card appears where the
user is looking. The occupancy grid is rebuilt on every call; column count is
never cached because the viewport width can change between calls.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from ..models.grid import Breakpoint, GridPosition, GridRect, ResponsiveLayout, effective_rect
from .config import (
    BENTO_GRID_TOTAL_ROW_HEIGHT,
    LARGE_LAYOUT_COLUMNS,
    LARGE_LAYOUT_MIN_WIDTH,
    SMALL_LAYOUT_COLUMNS,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Viewport:
    """Visible window of the page, in pixels."""

    width: float
    height: float
    scroll_top: float = 0.0

    @property
    def rows(self) -> int:
        """Number of grid rows one screenful spans."""
        return max(0, math.floor(self.height / BENTO_GRID_TOTAL_ROW_HEIGHT))

    @property
    def first_row(self) -> int:
        return max(0, math.floor(self.scroll_top / BENTO_GRID_TOTAL_ROW_HEIGHT))


def grid_columns(viewport: Optional[Viewport]) -> int:
    """Column count for the current viewport (4 without one)."""
    if viewport is None:
        return LARGE_LAYOUT_COLUMNS
    return SMALL_LAYOUT_COLUMNS if viewport.width < LARGE_LAYOUT_MIN_WIDTH else LARGE_LAYOUT_COLUMNS


def breakpoint_for(viewport: Optional[Viewport]) -> Breakpoint:
    return Breakpoint.LG if grid_columns(viewport) == LARGE_LAYOUT_COLUMNS else Breakpoint.SM


def _bottom_edge(rects: Iterable[GridRect]) -> int:
    return max((rect.bottom for rect in rects), default=0)


class OccupancyGrid:
    """Boolean cell matrix marking cells covered by existing rectangles."""

    def __init__(self, columns: int, rows: int):
        self.columns = columns
        self.rows = rows
        self._cells: List[List[bool]] = [[False] * columns for _ in range(rows)]

    @classmethod
    def from_rects(cls, rects: Iterable[GridRect], columns: int, rows: int) -> "OccupancyGrid":
        grid = cls(columns, rows)
        for rect in rects:
            grid.mark(rect)
        return grid

    def mark(self, rect: GridRect) -> None:
        # Cells outside the grid (too far right or below the padding) are ignored
        for x, y in rect.cells():
            if y < self.rows and x < self.columns:
                self._cells[y][x] = True

    def is_occupied(self, x: int, y: int) -> bool:
        return self._cells[y][x]

    def fits(self, x: int, y: int, w: int, h: int) -> bool:
        """True if a w*h rectangle at (x, y) lies inside the grid on free cells."""
        if x < 0 or y < 0 or x + w > self.columns:
            return False
        for dy in range(h):
            if y + dy >= self.rows:
                return False
            row = self._cells[y + dy]
            for dx in range(w):
                if row[x + dx]:
                    return False
        return True

    def scan(self, rows: Iterable[int], w: int, h: int) -> Optional[GridPosition]:
        """Top-to-bottom, left-to-right search over the given rows."""
        for y in rows:
            for x in range(0, self.columns - w + 1):
                if self.fits(x, y, w, h):
                    return GridPosition(x=x, y=y)
        return None


def compute_best_insert_position(
    rects: Sequence[GridRect],
    card_width: int,
    card_height: int,
    viewport: Optional[Viewport] = None,
) -> GridPosition:
    """Pick the cell for a new card of ``card_width`` x ``card_height``.

    Args:
        rects: Rectangles already placed in the active breakpoint's layout
        card_width: Requested column span (callers keep it <= column count)
        card_height: Requested row span
        viewport: Current viewport; None for server/no-viewport contexts

    Returns:
        Top-left cell for the new card. Always returns a position; when no
        free slot exists within the padded search height the position is a
        row near the top of the viewport and may overlap.
    """
    max_y = _bottom_edge(rects)

    if viewport is None:
        # No viewport to reason about: append below everything
        return GridPosition(x=0, y=max_y)

    columns = grid_columns(viewport)
    viewport_rows = viewport.rows
    search_end = max_y + card_height + viewport_rows
    grid = OccupancyGrid.from_rects(rects, columns, search_end)

    viewport_start = viewport.first_row
    # Last row where a card of this height still fits inside the visible window
    viewport_last = viewport_start + viewport_rows - card_height

    visible_rows = range(viewport_start, min(viewport_last + 1, search_end))
    position = grid.scan(visible_rows, card_width, card_height)
    if position is not None:
        logger.debug(f"Placed {card_width}x{card_height} card in viewport at ({position.x}, {position.y})")
        return position

    remaining_rows = (y for y in range(search_end) if not viewport_start <= y <= viewport_last)
    position = grid.scan(remaining_rows, card_width, card_height)
    if position is not None:
        logger.debug(f"Placed {card_width}x{card_height} card outside viewport at ({position.x}, {position.y})")
        return position

    insertion_y = max(0, viewport_start + viewport_rows // 4)
    logger.warning(
        f"No free {card_width}x{card_height} slot in {columns} columns, "
        f"falling back to viewport row {insertion_y}"
    )
    return GridPosition(x=0, y=insertion_y)


def shift_for_insert(
    rects: Sequence[GridRect],
    position: GridPosition,
    card_width: int,
    card_height: int,
) -> List[GridRect]:
    """Rectangles pushed down to make room for a card forced in at ``position``.

    Cards sharing a column with the new card and starting at or below its row
    move down by the card's height. Returns only the moved rectangles, at
    their new positions; the input is not modified.
    """
    end_x = position.x + card_width
    shifted = [
        rect.model_copy(update={"y": rect.y + card_height})
        for rect in rects
        if max(position.x, rect.x) < min(end_x, rect.right) and rect.y >= position.y
    ]
    if shifted:
        logger.debug(f"Shifting {len(shifted)} card(s) down by {card_height} row(s)")
    return shifted


def find_position_for_columns(
    rects: Sequence[GridRect],
    card_width: int,
    card_height: int,
    columns: int,
) -> GridPosition:
    """Viewport-free first fit for a layout with ``columns`` columns.

    Used for the breakpoint the user is not currently looking at. Searches
    rows up to the current bottom edge and appends below when nothing fits.
    """
    if not rects:
        return GridPosition(x=0, y=0)

    max_y = _bottom_edge(rects)
    grid = OccupancyGrid.from_rects(rects, columns, max_y + card_height + 1)
    position = grid.scan(range(0, max_y + 1), card_width, card_height)
    if position is not None:
        return position
    return GridPosition(x=0, y=max_y)


def plan_dual_layout(
    items: Sequence[object],
    card_width: int,
    card_height: int,
    viewport: Optional[Viewport] = None,
) -> Tuple[ResponsiveLayout, GridPosition]:
    """Place a new card in both breakpoint layouts.

    The active breakpoint (derived from the viewport) gets the viewport-aware
    search; the other breakpoint gets the plain first-fit search. Existing
    items are measured at their effective position for each breakpoint.

    Returns:
        (responsive layout for both breakpoints, position in the active breakpoint)
    """
    active = breakpoint_for(viewport)
    other = active.other

    active_rects = [effective_rect(item, active) for item in items]
    other_rects = [effective_rect(item, other) for item in items]

    active_position = compute_best_insert_position(active_rects, card_width, card_height, viewport)
    other_width = min(card_width, other.columns)
    other_position = find_position_for_columns(other_rects, other_width, card_height, other.columns)

    layout = ResponsiveLayout(**{active.value: active_position, other.value: other_position})
    return layout, active_position
