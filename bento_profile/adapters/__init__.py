# Storage adapters: mutable local store and read-only published document

from .base import ProfileDataAdapter, parse_snapshot
from .local_store import LocalStoreAdapter, generate_item_id
from .static_config import StaticConfigAdapter, file_loader
from .stores import JsonFileStore, KeyValueStore, MemoryStore

__all__ = [
    "ProfileDataAdapter",
    "parse_snapshot",
    "LocalStoreAdapter",
    "generate_item_id",
    "StaticConfigAdapter",
    "file_loader",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
]
