"""Ranking domain Pydantic V2 schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.enums import ItemType


class RecomputeRequest(BaseModel):
    """Body for the internal batch trigger. Every field is optional."""

    item_type: ItemType | None = Field(
        default=None,
        description="Restrict the run to `card` or `collection` (`stack` accepted). Omit for both.",
    )
    changed_since_days: int | None = Field(
        default=None,
        ge=1,
        description="Only rescore items updated within this many days. Omit for the full corpus.",
    )
    dry_run: bool = Field(default=False, description="Compute and report without writing.")

    @field_validator("item_type", mode="before")
    @classmethod
    def _resolve_alias(cls, value: object) -> object:
        if isinstance(value, str):
            return ItemType.from_external(value)
        return value


class RecomputeErrorOut(BaseModel):
    stage: str = Field(description="`load`, `score` or `normalize`.")
    item_type: ItemType | None = None
    item_id: UUID | None = None
    error: str


class RecomputeResponse(BaseModel):
    success: bool = True
    succeeded: int = Field(description="Items whose raw score was computed (and written unless dry run).")
    cards_processed: int
    collections_processed: int
    normalized: int = Field(description="Rows covered by the normalization pass.")
    dry_run: bool
    errors: list[RecomputeErrorOut]
    timestamp: datetime


class RankingItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_type: ItemType
    item_id: UUID
    raw_score: float
    norm_score: float | None
    updated_at: datetime


class RankingStatsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_type: ItemType
    item_count: int
    normalized_count: int
    mean_raw_score: float
    mean_norm_score: float | None
    last_updated_at: datetime | None


class ScoreExplanation(BaseModel):
    """Every factor of the live score for one item."""

    item_type: ItemType
    item_id: UUID
    upvotes: float
    saves: float
    comments: float
    visits: float
    age_hours: float
    creator_quality_score: float
    promotion_active: bool
    base: float
    creator_factor: float
    promo_factor: float
    age_factor: float
    abuse_factor: float
    raw_score: float
    stored_raw_score: float | None = Field(
        default=None, description="raw_score currently in the ranking store, if any."
    )
    stored_norm_score: float | None = None
