"""
Profile data adapter interface.

Hides whether profile data lives in the mutable local store (edit mode) or in
the pre-baked published document (read-only), so callers never branch on the
mode themselves.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from ..core.errors import MalformedSnapshotError
from ..models import (
    BentoItem,
    BentoItemDraft,
    BentoItemUpdate,
    ProfileData,
    ProfileSnapshot,
    ProfileUpdate,
)

ProfilePatch = Union[ProfileUpdate, Mapping[str, Any]]
ItemPatch = Union[BentoItemUpdate, Mapping[str, Any]]
ItemInput = Union[BentoItemDraft, Mapping[str, Any]]
SnapshotInput = Union[ProfileSnapshot, Mapping[str, Any]]


def as_profile_update(patch: ProfilePatch) -> ProfileUpdate:
    if isinstance(patch, ProfileUpdate):
        return patch
    return ProfileUpdate.model_validate(dict(patch))


def as_item_update(patch: ItemPatch) -> BentoItemUpdate:
    if isinstance(patch, BentoItemUpdate):
        return patch
    return BentoItemUpdate.model_validate(dict(patch))


def as_item_draft(item: ItemInput) -> BentoItemDraft:
    if isinstance(item, BentoItemDraft):
        return item
    return BentoItemDraft.model_validate(dict(item))


def parse_snapshot(data: SnapshotInput, source: str = "") -> ProfileSnapshot:
    """Validate a profile document.

    Raises:
        MalformedSnapshotError: If the document does not match the schema
    """
    if isinstance(data, ProfileSnapshot):
        return data.model_copy(deep=True)
    if not isinstance(data, Mapping):
        raise MalformedSnapshotError(f"Profile document must be an object, got {type(data).__name__}", source)
    try:
        return ProfileSnapshot.model_validate(dict(data))
    except ValidationError as e:
        raise MalformedSnapshotError(f"Invalid profile document: {e}", source) from e


class ProfileDataAdapter(ABC):
    """Contract for all profile data operations."""

    @abstractmethod
    def get_adapter_name(self) -> str:
        """Stable identity, usable as a cache key."""

    @abstractmethod
    async def is_available(self) -> bool:
        """True if the backing storage can be used right now."""

    # Profile operations

    @abstractmethod
    async def get_profile(self) -> Optional[ProfileData]:
        ...

    @abstractmethod
    async def update_profile(self, patch: ProfilePatch) -> None:
        ...

    # Bento grid operations

    @abstractmethod
    async def get_bento_items(self) -> List[BentoItem]:
        ...

    @abstractmethod
    async def add_bento_item(self, item: ItemInput) -> BentoItem:
        """Persist a new card and return it with its assigned identifier."""

    @abstractmethod
    async def update_bento_item(self, item_id: str, patch: ItemPatch) -> None:
        ...

    @abstractmethod
    async def batch_update_positions(self, updates: Sequence[Mapping[str, Any]]) -> None:
        """Apply many drag/resize results in one read-modify-write cycle."""

    @abstractmethod
    async def delete_bento_item(self, item_id: str) -> None:
        ...

    # Export/import

    @abstractmethod
    def export_config(self) -> ProfileSnapshot:
        ...

    @abstractmethod
    async def import_config(self, snapshot: SnapshotInput) -> None:
        ...

    @property
    def read_only(self) -> bool:
        return False
