"""Feed domain Pydantic V2 schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

_EMPTY_STATS = {"views": 0, "upvotes": 0, "saves": 0, "comments": 0}


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str | None = None
    display_name: str | None = None
    avatar_url: str | None = None


class AttributionSummary(BaseModel):
    """Who added this card's URL, and via which collection (if any)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    card_id: UUID
    user_id: UUID
    source: str | None = None
    collection_id: UUID | None = None
    created_at: datetime
    user: UserSummary | None = None


class TagSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str


class CardFeedItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: Literal["card"] = "card"
    id: UUID
    canonical_url: str | None = None
    title: str | None = None
    description: str | None = None
    thumbnail_url: str | None = None
    domain: str | None = None
    is_public: bool = True
    visits_count: int = 0
    saves_count: int = 0
    upvotes_count: int = 0
    comments_count: int = 0
    created_by: UUID | None = None
    creator: UserSummary | None = None
    created_at: datetime
    score: float = Field(default=0.0, description="Normalized ranking score; 0 when unranked.")
    attributions: list[AttributionSummary] = Field(default_factory=list)


class CollectionFeedItem(BaseModel):
    """A collection in the feed. Clients still call these "stacks"."""

    model_config = ConfigDict(from_attributes=True)

    type: Literal["collection"] = "collection"
    id: UUID
    title: str
    description: str | None = None
    slug: str | None = None
    cover_image_url: str | None = None
    is_public: bool = True
    stats: dict = Field(default_factory=lambda: dict(_EMPTY_STATS))
    owner_id: UUID
    owner: UserSummary | None = None
    tags: list[TagSummary] = Field(default_factory=list)
    created_at: datetime
    score: float = Field(default=0.0, description="Normalized ranking score; 0 when unranked.")

    @field_validator("stats", mode="before")
    @classmethod
    def _default_stats(cls, value: object) -> object:
        return value if value else dict(_EMPTY_STATS)


FeedItem = Annotated[Union[CardFeedItem, CollectionFeedItem], Field(discriminator="type")]


class FeedResponse(BaseModel):
    """One page of the mixed, deduplicated feed."""

    feed: list[FeedItem]
    total: int = Field(description="Deduplicated candidate count before the page slice.")
    limit: int
    offset: int
    cached: bool = Field(
        default=False,
        description="True when the page was served from the Redis cache.",
    )
