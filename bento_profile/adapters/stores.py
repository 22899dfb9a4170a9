"""Key/value backends for the mutable profile store.

Values are JSON strings, mirroring browser localStorage semantics. Writes that
touch several keys go through ``update()`` so they land together.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal string store used by LocalStoreAdapter."""

    def get(self, key: str) -> Optional[str]:
        ...

    def update(self, changes: Mapping[str, Optional[str]]) -> None:
        """Apply all changes at once; a None value deletes the key."""
        ...

    def keys(self) -> List[str]:
        ...


class MemoryStore:
    """In-process store (tests, previews, ephemeral sessions)."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self.update({key: value})

    def update(self, changes: Mapping[str, Optional[str]]) -> None:
        for key, value in changes.items():
            if value is None:
                self._data.pop(key, None)
            else:
                self._data[key] = value

    def keys(self) -> List[str]:
        return list(self._data)


class JsonFileStore:
    """Store persisted as a single JSON object on disk.

    Every read goes to disk so a document written by another process is seen
    immediately; every write replaces the whole file atomically (temp file +
    rename) so readers never observe a partial write.
    """

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (ValueError, OSError) as e:
            logger.error(f"Store file {self.path} is unreadable, treating as empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"Store file {self.path} does not hold an object, treating as empty")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        self.update({key: value})

    def update(self, changes: Mapping[str, Optional[str]]) -> None:
        data = self._load()
        for key, value in changes.items():
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
        self._write(data)

    def keys(self) -> List[str]:
        return list(self._load())

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Atomic write using temp file + rename
        fd, temp_path = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.stem}-",
            suffix=".json",
        )

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())

            os.replace(temp_path, self.path)

        except Exception:
            # Clean up temp file on error
            if Path(temp_path).exists():
                os.unlink(temp_path)
            raise
