"""Rich formatters for bento-profile CLI output."""

import json
from typing import Any, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..core.placement import OccupancyGrid
from ..models import BentoItem, Breakpoint, GridPosition, ProfileData, effective_rect

# Global console instance
console = Console()
err_console = Console(stderr=True)

TYPE_STYLES = {
    "link": "blue",
    "text": "white",
    "image": "magenta",
    "repository": "green",
    "people": "cyan",
    "section_title": "bold yellow",
    "need": "red",
    "placeholder": "dim",
}


def format_profile(profile: Optional[ProfileData], adapter_name: str, mode: str) -> Panel:
    """Format profile metadata as a Rich panel.

    Args:
        profile: Profile to display (None when nothing is stored yet)
        adapter_name: Adapter that served the data
        mode: Resolved editor mode

    Returns:
        Rich Panel object ready for display
    """
    lines: List[str] = []
    if profile is None:
        lines.append("[dim]No profile stored yet[/dim]")
    else:
        lines.append(f"[bold]{escape(profile.name or profile.username)}[/bold]")
        for label, value in (
            ("Title", profile.title),
            ("Institution", profile.institution),
            ("Location", profile.location),
            ("Website", profile.website),
            ("Bio", profile.bio),
        ):
            if value:
                lines.append(f"[cyan]{label}:[/cyan] {escape(value)}")
        if profile.research_interests:
            lines.append(f"[cyan]Interests:[/cyan] {escape(', '.join(profile.research_interests))}")
        if profile.updated_at:
            lines.append(f"[dim]Updated {profile.updated_at}[/dim]")

    return Panel(
        "\n".join(lines),
        title="Profile",
        subtitle=f"{adapter_name} · {mode}",
        border_style="cyan",
    )


def _describe(item: BentoItem) -> str:
    content = item.content
    for key in ("title", "text", "url", "src"):
        if content.get(key):
            return str(content[key])
    if content.get("owner") and content.get("repo"):
        return f"{content['owner']}/{content['repo']}"
    return ""


def format_item_table(items: Sequence[BentoItem], breakpoint: Breakpoint) -> Table:
    """Format bento cards as a Rich table sorted by grid position.

    Args:
        items: Cards to display
        breakpoint: Breakpoint whose effective positions are shown

    Returns:
        Rich Table object ready for display
    """
    table = Table(
        title=f"Bento items ({breakpoint.value}, {breakpoint.columns} columns)",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("ID", style="dim")
    table.add_column("Type")
    table.add_column("Position", justify="right")
    table.add_column("Size", justify="right", style="yellow")
    table.add_column("Content", overflow="ellipsis", max_width=48)

    rows = sorted(items, key=lambda i: (i.position_for(breakpoint).y, i.position_for(breakpoint).x))
    for item in rows:
        position = item.position_for(breakpoint)
        style = TYPE_STYLES.get(item.type.value, "white")
        table.add_row(
            item.id,
            f"[{style}]{item.type.value}[/{style}]",
            f"({position.x}, {position.y})",
            f"{item.w}x{item.h}",
            _describe(item),
        )

    return table


def format_occupancy(
    items: Sequence[BentoItem],
    breakpoint: Breakpoint,
    highlight: Optional[GridPosition] = None,
    highlight_size: Optional[tuple] = None,
) -> Text:
    """Render the occupancy grid as text, one character per cell.

    Occupied cells show the first letter of the card type; a proposed
    placement is drawn with ``*``.
    """
    rects = [effective_rect(item, breakpoint) for item in items]
    columns = breakpoint.columns
    rows = max((rect.bottom for rect in rects), default=0)
    if highlight is not None and highlight_size is not None:
        rows = max(rows, highlight.y + highlight_size[1])

    grid = OccupancyGrid.from_rects(rects, columns, rows)
    labels = {}
    for item, rect in zip(items, rects):
        for cell in rect.cells():
            labels[cell] = item.type.value[0].upper()

    proposed = set()
    if highlight is not None and highlight_size is not None:
        w, h = highlight_size
        proposed = {(highlight.x + dx, highlight.y + dy) for dx in range(w) for dy in range(h)}

    text = Text()
    for y in range(rows):
        text.append(f"{y:>3} ", style="dim")
        for x in range(columns):
            if (x, y) in proposed:
                text.append("*", style="bold green")
            elif grid.is_occupied(x, y):
                text.append(labels.get((x, y), "#"), style="cyan")
            else:
                text.append(".", style="dim")
        text.append("\n")
    if rows == 0:
        text.append("(empty grid)\n", style="dim")
    return text


def format_json(data: Any, pretty: bool = True) -> str:
    """Format data as JSON string."""
    if pretty:
        return json.dumps(data, indent=2, default=str)
    return json.dumps(data, default=str)


def print_success(message: str) -> None:
    console.print(Text.from_markup(f"[bold green]✓[/bold green] {escape(message)}"))


def print_error(message: str) -> None:
    err_console.print(Text.from_markup(f"[bold red]✗[/bold red] {escape(message)}"))


def print_warning(message: str) -> None:
    err_console.print(Text.from_markup(f"[bold yellow]⚠[/bold yellow]  {escape(message)}"))
