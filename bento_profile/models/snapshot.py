"""
Persisted profile document.

Shape shared by the mutable store export and the pre-baked published file::

    {
      "profile": {...},
      "bentoGrid": {"items": [{"id", "type", "content", "layout": {x, y, w, h}, ...}]},
      "metadata": {"version", "lastModified", "enrichedFrom"?}
    }
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .bento import BentoItem, BentoItemType, ImageTransform, normalize_item_type
from .grid import ResponsiveLayout
from .profile import ProfileData

DOCUMENT_VERSION = "1.0.0"


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SnapshotLayout(BaseModel):
    x: int = Field(default=0, ge=0)
    y: int = Field(default=0, ge=0)
    w: int = Field(default=1, ge=1)
    h: int = Field(default=1, ge=1)


class SnapshotItem(BaseModel):
    """One card as written in the document."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: BentoItemType
    content: Dict[str, Any] = Field(default_factory=dict)
    layout: SnapshotLayout = Field(default_factory=SnapshotLayout)
    responsive: Optional[ResponsiveLayout] = None
    legacy_layout: Optional[ResponsiveLayout] = Field(default=None, alias="legacyLayout")
    image_transform: Optional[ImageTransform] = Field(default=None, alias="imageTransform")

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        return normalize_item_type(v)

    @classmethod
    def from_bento_item(cls, item: BentoItem) -> "SnapshotItem":
        return cls(
            id=item.id,
            type=item.type,
            content=dict(item.content),
            layout=SnapshotLayout(x=item.x, y=item.y, w=item.w, h=item.h),
            responsive=item.responsive,
            legacy_layout=item.layout,
            image_transform=item.image_transform,
        )

    def to_bento_item(self) -> BentoItem:
        return BentoItem(
            id=self.id,
            type=self.type,
            content=dict(self.content),
            x=self.layout.x,
            y=self.layout.y,
            w=self.layout.w,
            h=self.layout.h,
            responsive=self.responsive,
            layout=self.legacy_layout,
            image_transform=self.image_transform,
        )


class BentoGridSection(BaseModel):
    items: List[SnapshotItem] = Field(default_factory=list)


class SnapshotMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: str = DOCUMENT_VERSION
    last_modified: str = Field(default_factory=utc_now_iso, alias="lastModified")
    enriched_from: Optional[str] = Field(default=None, alias="enrichedFrom")


class ProfileSnapshot(BaseModel):
    """Complete profile document (profile + cards + metadata)."""

    model_config = ConfigDict(populate_by_name=True)

    profile: ProfileData = Field(default_factory=ProfileData)
    bento_grid: BentoGridSection = Field(default_factory=BentoGridSection, alias="bentoGrid")
    metadata: SnapshotMetadata = Field(default_factory=SnapshotMetadata)

    @classmethod
    def build(
        cls,
        profile: Optional[ProfileData],
        items: List[BentoItem],
        metadata: Optional[SnapshotMetadata] = None,
    ) -> "ProfileSnapshot":
        return cls(
            profile=profile or ProfileData(),
            bento_grid=BentoGridSection(items=[SnapshotItem.from_bento_item(i) for i in items]),
            metadata=metadata or SnapshotMetadata(),
        )

    @property
    def items(self) -> List[SnapshotItem]:
        return self.bento_grid.items

    def bento_items(self) -> List[BentoItem]:
        return [item.to_bento_item() for item in self.bento_grid.items]

    def is_empty(self) -> bool:
        return not self.bento_grid.items and self.profile == ProfileData()

    def to_document(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys; optional item fields omitted when unset."""
        document = self.model_dump(mode="json", by_alias=True)
        for item in document["bentoGrid"]["items"]:
            for key in ("responsive", "legacyLayout", "imageTransform"):
                if item.get(key) is None:
                    item.pop(key, None)
        if document["metadata"].get("enrichedFrom") is None:
            document["metadata"].pop("enrichedFrom", None)
        return document
