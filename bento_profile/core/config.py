"""Configuration for bento profile editing.

Grid constants are fixed; runtime settings come from an optional JSON file
overlaid with ``BENTO_*`` environment variables (environment wins).
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

# Grid geometry (pixels)
BENTO_GRID_ROW_HEIGHT = 67.5
BENTO_GRID_VERTICAL_MARGIN = 40
# Pitch of a single row including the gap below it; converts scroll offsets to row indices
BENTO_GRID_TOTAL_ROW_HEIGHT = BENTO_GRID_ROW_HEIGHT + BENTO_GRID_VERTICAL_MARGIN

LARGE_LAYOUT_MIN_WIDTH = 1100
LARGE_LAYOUT_COLUMNS = 4
SMALL_LAYOUT_COLUMNS = 2

DEFAULT_AUTOSAVE_DELAY_MS = 1500
DEFAULT_NAMESPACE = "profile"
DEFAULT_STATIC_CONFIG = "profile-config.json"


def get_default_store_path() -> Path:
    """Default mutable store location ($XDG_DATA_HOME/bento-profile/store.json)."""
    data_home = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local/share")
    return Path(data_home) / "bento-profile" / "store.json"


def site_prefix_from_base_path(base_path: Optional[str]) -> str:
    """Derive the per-site key prefix from a deploy base path ("/liz-test/" -> "liz-test")."""
    if not base_path:
        return ""
    return base_path.strip("/")


class Settings(BaseModel):
    """Session settings resolved once at startup."""

    published: bool = Field(default=False, description="Build-time published flag")
    mode_override: Optional[Literal["edit", "preview"]] = Field(
        default=None, description="Client-side mode override"
    )
    force_adapter: Optional[Literal["static", "local"]] = Field(
        default=None, description="Bypass mode detection"
    )
    store_path: Path = Field(default_factory=get_default_store_path)
    static_config_path: Path = Field(default=Path(DEFAULT_STATIC_CONFIG))
    namespace: str = Field(default=DEFAULT_NAMESPACE, min_length=1)
    base_path: str = Field(default="", description="Deploy sub-path used as site prefix")
    autosave_delay_ms: int = Field(default=DEFAULT_AUTOSAVE_DELAY_MS, ge=0)
    log_level: str = Field(default="WARNING")

    @field_validator("mode_override", "force_adapter", mode="before")
    @classmethod
    def blank_is_none(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            return v or None
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def site_prefix(self) -> str:
        return site_prefix_from_base_path(self.base_path)


ENV_VARS: Dict[str, str] = {
    "BENTO_PUBLISHED": "published",
    "BENTO_MODE": "mode_override",
    "BENTO_FORCE_ADAPTER": "force_adapter",
    "BENTO_STORE_PATH": "store_path",
    "BENTO_STATIC_CONFIG": "static_config_path",
    "BENTO_NAMESPACE": "namespace",
    "BENTO_BASE_PATH": "base_path",
    "BENTO_AUTOSAVE_DELAY_MS": "autosave_delay_ms",
    "BENTO_LOG_LEVEL": "log_level",
}


def load_settings(
    config_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from an optional JSON file and the environment.

    Args:
        config_file: JSON file with Settings field names as keys
        environ: Environment mapping (default: os.environ)

    Returns:
        Validated Settings

    Raises:
        ValueError: If the config file cannot be parsed or a value is invalid
    """
    environ = os.environ if environ is None else environ
    data: Dict[str, Any] = {}

    if config_file is not None and config_file.exists():
        try:
            with config_file.open("r", encoding="utf-8") as f:
                data.update(json.load(f))
            logger.debug(f"Loaded settings file: {config_file}")
        except (ValueError, OSError) as e:
            raise ValueError(f"Failed to load settings from {config_file}: {e}")

    for env_name, field_name in ENV_VARS.items():
        value = environ.get(env_name)
        if value is None:
            continue
        if field_name == "published":
            # Only the literal "true" enables published builds
            data[field_name] = value.strip().lower() == "true"
        else:
            data[field_name] = value

    try:
        return Settings(**data)
    except ValidationError as e:
        raise ValueError(f"Invalid settings: {e}")
