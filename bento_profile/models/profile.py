"""
Profile metadata models.

Field names are snake_case in Python and camelCase on the wire; both spellings
are accepted on input because older stores wrote snake_case keys.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProfileData(BaseModel):
    """Profile metadata shown above the bento grid."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default="local-profile")
    user_id: str = Field(default="local-user")
    username: str = Field(default="anonymous")
    name: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    title: Optional[str] = None
    institution: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    social_links: Dict[str, str] = Field(default_factory=dict)
    research_interests: List[str] = Field(default_factory=list)
    event_tag_ids: List[str] = Field(default_factory=list)
    seeking_items: List[str] = Field(default_factory=list)
    offering_items: List[str] = Field(default_factory=list)
    is_verified: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ProfileUpdate(BaseModel):
    """Partial profile update; only fields that were set are merged."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    username: Optional[str] = None
    name: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    title: Optional[str] = None
    institution: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    social_links: Optional[Dict[str, str]] = None
    research_interests: Optional[List[str]] = None
    event_tag_ids: Optional[List[str]] = None
    seeking_items: Optional[List[str]] = None
    offering_items: Optional[List[str]] = None
    is_verified: Optional[bool] = None

    def apply_to(self, profile: ProfileData, updated_at: str) -> ProfileData:
        changes = self.model_dump(exclude_unset=True)
        # Collections are never stored as null
        for key in ("social_links", "research_interests", "event_tag_ids", "seeking_items", "offering_items"):
            if key in changes and changes[key] is None:
                changes.pop(key)
        changes["updated_at"] = updated_at
        return profile.model_copy(update=changes)
