"""Exception hierarchy for profile storage and editing."""


class BentoProfileError(Exception):
    """Base class for all bento profile errors."""

    pass


class ReadOnlyError(BentoProfileError):
    """Mutation attempted on the published (frozen) profile.

    Always recoverable: surface as "not available in preview/published mode".
    """

    def __init__(self, operation: str, adapter: str = "StaticConfigAdapter"):
        self.operation = operation
        self.adapter = adapter
        super().__init__(f"{operation} is not available in published mode ({adapter} is read-only)")


class PersistenceError(BentoProfileError):
    """The underlying store failed to write (disk full, permissions, bad data)."""

    pass


class MalformedSnapshotError(BentoProfileError):
    """A profile document could not be parsed or validated."""

    def __init__(self, message: str, source: str = ""):
        self.source = source
        super().__init__(f"{message} ({source})" if source else message)


class ItemNotFoundError(BentoProfileError, KeyError):
    """No bento item with the requested identifier."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Bento item with id {item_id} not found")

    def __str__(self) -> str:
        return self.args[0]


class DuplicateItemError(BentoProfileError):
    """The card already exists on the grid (same link or repository)."""

    pass
