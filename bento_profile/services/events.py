"""Session-scoped publish/subscribe channel.

Replaces window-global broadcast events: each editing session owns one
channel and passes it to the components that need to observe changes.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, Dict[str, Any]], None]

# Event names
AVATAR_UPDATED = "avatar.updated"
CACHE_CLEARED = "cache.cleared"
USER_UPDATED = "user.updated"
PROFILE_UPDATED = "profile.updated"
ITEM_ADDED = "item.added"
ITEM_UPDATED = "item.updated"
ITEM_DELETED = "item.deleted"
AUTOSAVE_STATUS = "autosave.status"

ALL_EVENTS = "*"


class EventChannel:
    """Synchronous in-process event channel."""

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: EventHandler) -> Callable[[], None]:
        """Register a handler for an event type ("*" receives everything).

        Returns:
            Callable that removes the subscription (safe to call twice)
        """
        self._handlers[event_type].append(handler)
        logger.debug(f"Registered handler for {event_type} events")

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, event_type: str, **payload: Any) -> int:
        """Deliver an event to its subscribers.

        A failing handler is logged and does not prevent delivery to the
        others.

        Returns:
            Number of handlers that ran without raising
        """
        delivered = 0
        handlers = list(self._handlers.get(event_type, [])) + list(self._handlers.get(ALL_EVENTS, []))
        for handler in handlers:
            try:
                handler(event_type, payload)
                delivered += 1
            except Exception as e:
                logger.error(f"Error in {event_type} handler {getattr(handler, '__name__', handler)}: {e}")
        return delivered

    def subscriber_count(self, event_type: str) -> int:
        return len(self._handlers.get(event_type, []))
