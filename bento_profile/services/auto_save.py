"""
Auto-save coordinator.

Watches a fingerprint of the editable working set and persists it after a
quiet period. At most one save runs at a time; a change that arrives while a
save is in flight waits in a single pending slot (newest wins) and is written
as soon as the in-flight save finishes, without another debounce.

The coordinator holds no profile data itself: ``save(fingerprint)`` is
expected to write whatever working set produced that fingerprint.
"""

import asyncio
import hashlib
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional

from ..core.config import DEFAULT_AUTOSAVE_DELAY_MS

logger = logging.getLogger(__name__)

SaveFunction = Callable[[str], Awaitable[None]]
StatusCallback = Callable[["AutoSaveStatus"], None]

# Timestamps change on every write and would make each save look like a new edit
_VOLATILE_PROFILE_FIELDS = ("createdAt", "updatedAt")


class AutoSaveStatus(str, Enum):
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


def compute_fingerprint(profile: Any, items: Iterable[Any]) -> str:
    """Stable digest of a profile and its cards.

    Args:
        profile: ProfileData (or None)
        items: BentoItem instances

    Returns:
        Hex SHA-256 of the canonical JSON form
    """
    profile_doc = profile.to_document() if profile is not None else None
    if profile_doc is not None:
        for key in _VOLATILE_PROFILE_FIELDS:
            profile_doc.pop(key, None)
    payload = {
        "profile": profile_doc,
        "items": [item.to_record() for item in items],
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class AutoSaveCoordinator:
    """Debounced, single-flight persistence driver.

    Example:
        >>> coordinator = AutoSaveCoordinator(save, delay_ms=1500)
        >>> coordinator.update(fingerprint, has_content=True, is_active=True)
        >>> await coordinator.wait_until_idle()
    """

    def __init__(
        self,
        save: SaveFunction,
        delay_ms: int = DEFAULT_AUTOSAVE_DELAY_MS,
        on_status_change: Optional[StatusCallback] = None,
    ):
        """Initialize the coordinator.

        Args:
            save: Coroutine persisting the working set for a fingerprint
            delay_ms: Quiet period before an automatic save
            on_status_change: Called with the new status on every transition
        """
        if delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0, got {delay_ms}")
        self._save = save
        self.delay_ms = delay_ms
        self._on_status_change = on_status_change

        self._status = AutoSaveStatus.IDLE
        self._timer: Optional[asyncio.Task] = None
        self._in_flight: Optional[asyncio.Task] = None
        self._pending: Optional[str] = None
        self._current: Optional[str] = None
        self._last_saved: Optional[str] = None
        self._has_content = False
        self._active = False
        self._manual_drain = False
        self._generation = 0
        self.last_error: Optional[BaseException] = None
        self.save_count = 0

    # State

    @property
    def status(self) -> AutoSaveStatus:
        return self._status

    @property
    def last_saved_fingerprint(self) -> Optional[str]:
        return self._last_saved

    @property
    def pending_fingerprint(self) -> Optional[str]:
        return self._pending

    @property
    def is_active(self) -> bool:
        """Whether the last observation allowed automatic saves."""
        return self._active

    @property
    def is_saving(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    @property
    def has_scheduled_save(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def _set_status(self, status: AutoSaveStatus) -> None:
        if status == self._status:
            return
        self._status = status
        logger.debug(f"Auto-save status: {status.value}")
        if self._on_status_change is not None:
            try:
                self._on_status_change(status)
            except Exception as e:
                logger.error(f"Auto-save status callback failed: {e}")

    # Observation

    def update(self, fingerprint: Optional[str], has_content: bool, is_active: bool) -> None:
        """Feed the latest observation of the working set.

        Must be called from a running event loop. A qualifying change restarts
        the debounce timer; anything else cancels it.
        """
        self._current = fingerprint
        self._has_content = has_content
        self._active = is_active

        if not is_active:
            # Deactivation only stops the timer; an in-flight save still finishes
            self._cancel_timer()
            return

        if not has_content or not fingerprint or fingerprint == self._last_saved:
            self._cancel_timer()
            return

        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._debounce(fingerprint))

    async def _debounce(self, fingerprint: str) -> None:
        await asyncio.sleep(self.delay_ms / 1000)
        self._timer = None
        self._request_save(fingerprint)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            if not self._timer.done():
                self._timer.cancel()
            self._timer = None

    # Saving

    def _request_save(self, fingerprint: str, force: bool = False) -> None:
        if self.is_saving:
            self._pending = fingerprint
            logger.debug("Save in flight, queued newest change")
            return
        if fingerprint == self._last_saved and not force:
            return
        self._start_save(fingerprint)

    def _start_save(self, fingerprint: str) -> None:
        self._in_flight = asyncio.get_running_loop().create_task(
            self._run_save(fingerprint, self._generation)
        )

    async def _run_save(self, fingerprint: str, generation: int) -> None:
        if generation == self._generation:
            self._set_status(AutoSaveStatus.SAVING)
        try:
            await self._save(fingerprint)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Auto-save failed: {e}")
            if generation == self._generation:
                self.last_error = e
                self._set_status(AutoSaveStatus.ERROR)
        else:
            self.save_count += 1
            if generation == self._generation:
                self._last_saved = fingerprint
                self.last_error = None
                self._set_status(AutoSaveStatus.SAVED)
            else:
                logger.debug("Save completed for a previous session, result discarded")
        finally:
            if self._in_flight is asyncio.current_task():
                self._in_flight = None
            self._drain_pending()

    def _drain_pending(self) -> None:
        if self._pending is None or not (self._active or self._manual_drain):
            return
        fingerprint, self._pending = self._pending, None
        self._manual_drain = False
        if fingerprint == self._last_saved:
            logger.debug("Queued change already saved, dropping it")
            return
        self._start_save(fingerprint)

    async def trigger_save(self) -> None:
        """Save the current working set now and wait for it to be written.

        Skips the debounce but not single flight: if a save is in flight the
        current fingerprint is queued behind it.
        """
        self._cancel_timer()
        if not self._current or not self._has_content:
            logger.debug("Manual save requested with nothing to save")
            return
        if self.is_saving:
            self._pending = self._current
            # Drained once even while inactive
            self._manual_drain = True
        else:
            self._request_save(self._current, force=True)
        await self.wait_until_idle()

    def reset(self) -> None:
        """Forget everything about the previous entity.

        A save already in flight keeps running, but its outcome no longer
        affects status or bookkeeping.
        """
        self._cancel_timer()
        self._pending = None
        self._manual_drain = False
        self._current = None
        self._last_saved = None
        self._has_content = False
        self.last_error = None
        self._generation += 1
        self._set_status(AutoSaveStatus.IDLE)

    async def wait_until_idle(self) -> None:
        """Wait until no save is scheduled or running."""
        while True:
            tasks = [t for t in (self._timer, self._in_flight) if t is not None and not t.done()]
            if not tasks:
                return
            await asyncio.wait(tasks)

    async def close(self) -> None:
        """Stop the timer, drop queued changes and wait for the in-flight save."""
        self._cancel_timer()
        self._pending = None
        self._manual_drain = False
        self._active = False
        if self._in_flight is not None and not self._in_flight.done():
            await asyncio.wait([self._in_flight])
