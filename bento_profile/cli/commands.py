"""CLI command handlers for bento-profile.

Every command resolves the editor mode from settings, opens the adapter for
that mode and works through it, so published profiles are never modified.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

from .. import __version__
from ..adapters import LocalStoreAdapter, ProfileDataAdapter, StaticConfigAdapter
from ..core.config import Settings, load_settings
from ..core.errors import (
    BentoProfileError,
    DuplicateItemError,
    MalformedSnapshotError,
    ReadOnlyError,
)
from ..core.mode import (
    EditorMode,
    build_local_adapter,
    build_static_adapter,
    create_adapter,
    resolve_mode,
    seed_local_store_from_static_config,
)
from ..core.placement import Viewport, breakpoint_for, compute_best_insert_position, grid_columns
from ..models import Breakpoint, effective_rect
from ..services import BentoGridSession
from . import formatters as fmt
from .logging_config import log_timing, setup_logging

logger = logging.getLogger(__name__)

DEFAULT_VIEWPORT_WIDTH = 1280
DEFAULT_VIEWPORT_HEIGHT = 800


def _settings_from_args(args: argparse.Namespace) -> Settings:
    """Load settings and apply command-line overrides."""
    settings = load_settings(Path(args.config) if args.config else None)
    overrides = {}
    if args.published:
        overrides["published"] = True
    if args.mode:
        overrides["mode_override"] = args.mode
    if args.store:
        overrides["store_path"] = Path(args.store)
    if args.static_config:
        overrides["static_config_path"] = Path(args.static_config)
    if args.namespace:
        overrides["namespace"] = args.namespace
    if overrides:
        settings = Settings(**{**settings.model_dump(), **overrides})
    return settings


async def _open(args: argparse.Namespace) -> Tuple[Settings, EditorMode, ProfileDataAdapter]:
    settings = _settings_from_args(args)
    mode = resolve_mode(settings.published, settings.mode_override)
    adapter = await create_adapter(mode, settings)
    return settings, mode, adapter


def _viewport_from_args(args: argparse.Namespace) -> Optional[Viewport]:
    if getattr(args, "no_viewport", False):
        return None
    return Viewport(width=args.width, height=args.height, scroll_top=args.scroll)


def _breakpoint_from_args(args: argparse.Namespace) -> Breakpoint:
    if getattr(args, "breakpoint", None):
        return Breakpoint(args.breakpoint)
    return breakpoint_for(_viewport_from_args(args))


# ============================================================================
# Read commands
# ============================================================================


async def cmd_show(args: argparse.Namespace) -> int:
    """Show the profile and its cards."""
    settings, mode, adapter = await _open(args)
    profile = await adapter.get_profile()
    items = await adapter.get_bento_items()

    if args.json:
        print(fmt.format_json(adapter.export_config().to_document()))
        return 0

    fmt.console.print(fmt.format_profile(profile, adapter.get_adapter_name(), mode.value))
    if items:
        fmt.console.print(fmt.format_item_table(items, _breakpoint_from_args(args)))
    else:
        fmt.console.print("[dim]No bento items[/dim]")
    return 0


async def cmd_grid(args: argparse.Namespace) -> int:
    """Render the occupancy grid for one breakpoint."""
    settings, mode, adapter = await _open(args)
    items = await adapter.get_bento_items()
    breakpoint = _breakpoint_from_args(args)
    fmt.console.print(f"[bold]{breakpoint.value}[/bold] ({breakpoint.columns} columns)")
    fmt.console.print(fmt.format_occupancy(items, breakpoint))
    return 0


async def cmd_place(args: argparse.Namespace) -> int:
    """Show where a card of the given size would be placed (dry run)."""
    if args.w < 1 or args.h < 1:
        fmt.print_error("Card width and height must be at least 1")
        return 1

    settings, mode, adapter = await _open(args)
    items = await adapter.get_bento_items()
    viewport = _viewport_from_args(args)
    breakpoint = breakpoint_for(viewport)
    rects = [effective_rect(item, breakpoint) for item in items]
    w = min(args.w, grid_columns(viewport))
    position = compute_best_insert_position(rects, w, args.h, viewport)

    if args.json:
        print(fmt.format_json({"breakpoint": breakpoint.value, "x": position.x, "y": position.y, "w": w, "h": args.h}))
        return 0

    fmt.console.print(
        f"{w}x{args.h} card -> ({position.x}, {position.y}) in [bold]{breakpoint.value}[/bold] layout"
    )
    fmt.console.print(fmt.format_occupancy(items, breakpoint, highlight=position, highlight_size=(w, args.h)))
    return 0


async def cmd_mode(args: argparse.Namespace) -> int:
    """Print the resolved editor mode and the adapter it selects."""
    settings = _settings_from_args(args)
    mode = resolve_mode(settings.published, settings.mode_override)
    if settings.force_adapter:
        adapter_name = "StaticConfigAdapter" if settings.force_adapter == "static" else "LocalStoreAdapter"
    else:
        adapter_name = "StaticConfigAdapter" if mode == EditorMode.PUBLISHED else "LocalStoreAdapter"

    if args.json:
        print(fmt.format_json({"mode": mode.value, "adapter": adapter_name, "published": settings.published}))
        return 0

    fmt.console.print(f"Mode: [bold]{mode.value}[/bold]")
    fmt.console.print(f"Adapter: {adapter_name}")
    fmt.console.print(f"Store: {settings.store_path}")
    fmt.console.print(f"Published document: {settings.static_config_path}")
    return 0


# ============================================================================
# Write commands
# ============================================================================


async def cmd_add(args: argparse.Namespace) -> int:
    """Add a card using the placement engine."""
    settings, mode, adapter = await _open(args)
    session = BentoGridSession(adapter, viewport=_viewport_from_args(args), auto_save_delay_ms=settings.autosave_delay_ms)
    await session.load()

    try:
        if args.type == "link":
            item = await session.add_link(args.value)
        elif args.type == "text":
            item = await session.add_text(args.value)
        elif args.type == "image":
            item = await session.add_image(args.value, size=args.size)
        elif args.type == "repository":
            item = await session.add_repository(args.value)
        elif args.type == "section":
            item = await session.add_section_title(args.value)
        else:
            item = await session.add_need_board(args.size or "horizontal")
    finally:
        await session.close()

    position = item.position_for(session.breakpoint)
    fmt.print_success(f"Added {item.type.value} card {item.id} at ({position.x}, {position.y})")
    return 0


async def cmd_export(args: argparse.Namespace) -> int:
    """Write the profile document to a file or stdout."""
    settings, mode, adapter = await _open(args)
    with log_timing("Export profile", logger):
        document = adapter.export_config().to_document()

    if args.file:
        path = Path(args.file)
        path.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
        fmt.print_success(f"Exported {len(document['bentoGrid']['items'])} card(s) to {path}")
    else:
        print(fmt.format_json(document))
    return 0


async def cmd_import(args: argparse.Namespace) -> int:
    """Replace the local profile with a document from a file."""
    path = Path(args.file)
    if not path.exists():
        fmt.print_error(f"File not found: {path}")
        return 1

    try:
        with path.open("r", encoding="utf-8") as f:
            document = json.load(f)
    except ValueError as e:
        raise MalformedSnapshotError(f"Invalid JSON: {e}", str(path)) from e

    settings, mode, adapter = await _open(args)
    with log_timing("Import profile", logger):
        await adapter.import_config(document)
    fmt.print_success(f"Imported profile from {path}")
    return 0


async def cmd_seed(args: argparse.Namespace) -> int:
    """Copy the published document into the local store if it is empty."""
    settings = _settings_from_args(args)
    local: LocalStoreAdapter = build_local_adapter(settings)
    static: StaticConfigAdapter = build_static_adapter(settings)
    seeded = await seed_local_store_from_static_config(local, static, refresh_if_newer=args.refresh)
    if seeded:
        fmt.print_success(f"Seeded local store from {settings.static_config_path}")
    else:
        fmt.console.print("[dim]Nothing to seed (local store already populated or no published profile)[/dim]")
    return 0


# ============================================================================
# Parser
# ============================================================================


def _add_viewport_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--width", type=float, default=DEFAULT_VIEWPORT_WIDTH, help="Viewport width in pixels")
    parser.add_argument("--height", type=float, default=DEFAULT_VIEWPORT_HEIGHT, help="Viewport height in pixels")
    parser.add_argument("--scroll", type=float, default=0.0, help="Vertical scroll offset in pixels")
    parser.add_argument("--no-viewport", action="store_true", help="Place below all existing cards")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bento-profile",
        description="Bento grid profile editor core: placement, storage and mode tooling",
    )
    parser.add_argument("--version", action="version", version=f"bento-profile {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging (INFO level)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging (DEBUG level)")
    parser.add_argument("--config", help="JSON settings file")
    parser.add_argument("--store", help="Local store file (BENTO_STORE_PATH)")
    parser.add_argument("--static-config", help="Published profile document (BENTO_STATIC_CONFIG)")
    parser.add_argument("--namespace", help="Store namespace (BENTO_NAMESPACE)")
    parser.add_argument("--published", action="store_true", help="Treat this as a published build")
    parser.add_argument("--mode", choices=["edit", "preview"], help="Editor mode override")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_show = subparsers.add_parser("show", help="Show profile and cards")
    parser_show.add_argument("--json", action="store_true", help="Output the profile document as JSON")
    parser_show.add_argument("--breakpoint", choices=["lg", "sm"], help="Layout to show positions for")
    _add_viewport_args(parser_show)

    parser_grid = subparsers.add_parser("grid", help="Render the occupancy grid")
    parser_grid.add_argument("--breakpoint", choices=["lg", "sm"], help="Layout to render (default: from viewport)")
    _add_viewport_args(parser_grid)

    parser_place = subparsers.add_parser("place", help="Dry-run placement of a W x H card")
    parser_place.add_argument("w", type=int, help="Card width in columns")
    parser_place.add_argument("h", type=int, help="Card height in rows")
    parser_place.add_argument("--json", action="store_true", help="Output as JSON")
    _add_viewport_args(parser_place)

    parser_add = subparsers.add_parser("add", help="Add a card")
    parser_add.add_argument(
        "type",
        choices=["link", "text", "image", "repository", "section", "need"],
        help="Card type",
    )
    parser_add.add_argument("value", nargs="?", default="", help="URL, text, image source or title")
    parser_add.add_argument("--size", help="Card size (small, horizontal, vertical, large, square)")
    _add_viewport_args(parser_add)

    parser_export = subparsers.add_parser("export", help="Export the profile document")
    parser_export.add_argument("file", nargs="?", help="Output file (default: stdout)")

    parser_import = subparsers.add_parser("import", help="Import a profile document")
    parser_import.add_argument("file", help="Profile document to import")

    parser_seed = subparsers.add_parser("seed", help="Seed the local store from the published document")
    parser_seed.add_argument("--refresh", action="store_true", help="Re-import when the published document is newer")

    parser_mode = subparsers.add_parser("mode", help="Show the resolved editor mode")
    parser_mode.add_argument("--json", action="store_true", help="Output as JSON")

    return parser


def cli_main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # No command = show help
    if not args.command:
        parser.print_help()
        return 0

    try:
        settings = _settings_from_args(args)
    except ValueError as e:
        fmt.print_error(str(e))
        return 1
    setup_logging(verbose=args.verbose, debug=args.debug, level=settings.log_level)

    command_handlers = {
        "show": cmd_show,
        "grid": cmd_grid,
        "place": cmd_place,
        "add": cmd_add,
        "export": cmd_export,
        "import": cmd_import,
        "seed": cmd_seed,
        "mode": cmd_mode,
    }

    handler = command_handlers.get(args.command)
    if handler is None:
        fmt.print_error(f"Unknown command: {args.command}")
        parser.print_help()
        return 1

    try:
        return asyncio.run(handler(args))
    except ReadOnlyError as e:
        fmt.print_error(f"Not available in published mode: {e.operation} ({e.adapter} is read-only)")
        return 1
    except DuplicateItemError as e:
        fmt.print_warning(str(e))
        return 1
    except (BentoProfileError, ValueError) as e:
        fmt.print_error(str(e))
        logger.debug("Command failed", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(cli_main())
