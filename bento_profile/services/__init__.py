# Editing services: auto-save, editing session, cache, events, metadata lookups

from .auto_save import AutoSaveCoordinator, AutoSaveStatus, compute_fingerprint
from .cache import TTLCache
from .events import EventChannel
from .grid_session import BentoGridSession
from .metadata import MetadataService, parse_repository_url

__all__ = [
    "AutoSaveCoordinator",
    "AutoSaveStatus",
    "compute_fingerprint",
    "TTLCache",
    "EventChannel",
    "BentoGridSession",
    "MetadataService",
    "parse_repository_url",
]
