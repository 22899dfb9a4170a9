"""Pytest configuration and shared fixtures for bento_profile tests."""

import json
import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

# Make the package importable when running from a source checkout
package_root = Path(__file__).parent.parent
if str(package_root) not in sys.path:
    sys.path.insert(0, str(package_root))

from bento_profile.adapters import LocalStoreAdapter, MemoryStore, StaticConfigAdapter  # noqa: E402
from bento_profile.core.config import Settings  # noqa: E402
from bento_profile.models import BentoItem  # noqa: E402


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def local_adapter(memory_store: MemoryStore) -> LocalStoreAdapter:
    """Mutable adapter over an in-memory store."""
    return LocalStoreAdapter(store=memory_store, namespace="profile")


@pytest.fixture
def sample_items() -> List[Dict[str, Any]]:
    """Three cards in the persisted document shape."""
    return [
        {
            "id": "1700000000000-abc123def",
            "type": "link",
            "content": {"url": "https://example.org", "title": "Example"},
            "layout": {"x": 0, "y": 0, "w": 2, "h": 2},
            "responsive": {"lg": {"x": 0, "y": 0}, "sm": {"x": 0, "y": 0}},
        },
        {
            "id": "1700000000001-0badc0ffe",
            "type": "text",
            "content": {"text": "Hello"},
            "layout": {"x": 2, "y": 0, "w": 1, "h": 2},
            "responsive": {"lg": {"x": 2, "y": 0}, "sm": {"x": 0, "y": 2}},
        },
        {
            "id": "1700000000002-123456789",
            "type": "github",
            "content": {"owner": "octo", "repo": "hello", "platform": "github"},
            "layout": {"x": 0, "y": 2, "w": 2, "h": 2},
        },
    ]


@pytest.fixture
def sample_document(sample_items: List[Dict[str, Any]]) -> Dict[str, Any]:
    """A published profile document."""
    return {
        "profile": {
            "id": "local-profile",
            "userId": "local-user",
            "username": "liz",
            "name": "Liz Example",
            "bio": "Researcher",
            "researchInterests": ["grids", "layouts"],
        },
        "bentoGrid": {"items": sample_items},
        "metadata": {"version": "1.0.0", "lastModified": "2025-06-01T12:00:00.000Z"},
    }


@pytest.fixture
def static_config_file(tmp_path: Path, sample_document: Dict[str, Any]) -> Path:
    path = tmp_path / "profile-config.json"
    path.write_text(json.dumps(sample_document, indent=2))
    return path


@pytest.fixture
def static_adapter(static_config_file: Path) -> StaticConfigAdapter:
    return StaticConfigAdapter(path=static_config_file)


@pytest.fixture
def settings(tmp_path: Path, static_config_file: Path) -> Settings:
    """Settings pointing at temporary store and published document."""
    return Settings(
        store_path=tmp_path / "store.json",
        static_config_path=static_config_file,
    )


@pytest.fixture
def make_item():
    """Factory for BentoItem test data."""

    def _make(item_id: str, x: int, y: int, w: int = 1, h: int = 1, **extra: Any) -> BentoItem:
        return BentoItem(id=item_id, type=extra.pop("type", "text"), x=x, y=y, w=w, h=h, **extra)

    return _make
