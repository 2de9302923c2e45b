"""Ranking controller: orchestration layer between router and service."""

from collections.abc import Mapping
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError
from app.models.enums import ItemType
from app.ranking import service
from app.ranking.exceptions import ScoreInputUnavailable
from app.ranking.inputs import ScoreInputsProvider
from app.ranking.schemas import (
    RankingItemOut,
    RankingStatsOut,
    RecomputeErrorOut,
    RecomputeRequest,
    RecomputeResponse,
    ScoreExplanation,
)
from app.ranking.scoring import WeightProfile
from app.ranking.store import RankingStore


async def recompute(
    body: RecomputeRequest,
    db: AsyncSession,
    weight_profiles: Mapping[ItemType, WeightProfile],
    snapshot_limit: int,
) -> RecomputeResponse:
    result = await service.recompute(
        RankingStore(db),
        ScoreInputsProvider(db),
        weight_profiles,
        item_type=body.item_type,
        changed_since_days=body.changed_since_days,
        dry_run=body.dry_run,
        snapshot_limit=snapshot_limit,
    )
    return RecomputeResponse(
        succeeded=result.succeeded,
        cards_processed=result.cards_processed,
        collections_processed=result.collections_processed,
        normalized=result.normalized,
        dry_run=result.dry_run,
        errors=[
            RecomputeErrorOut(
                stage=err.stage, item_type=err.item_type, item_id=err.item_id, error=err.error
            )
            for err in result.errors
        ],
        timestamp=datetime.now(timezone.utc),
    )


async def get_top_items(
    item_type: ItemType, db: AsyncSession, limit: int = 20, offset: int = 0
) -> list[RankingItemOut]:
    rows = await RankingStore(db).query_top(item_type, limit=limit, offset=offset)
    return [RankingItemOut.model_validate(r) for r in rows]


async def get_stats(db: AsyncSession) -> list[RankingStatsOut]:
    return [RankingStatsOut.model_validate(s) for s in await RankingStore(db).stats()]


async def explain(
    item_type: ItemType,
    item_id: UUID,
    db: AsyncSession,
    weight_profiles: Mapping[ItemType, WeightProfile],
) -> ScoreExplanation:
    try:
        inputs, breakdown = await service.explain(
            ScoreInputsProvider(db), weight_profiles, item_type, item_id
        )
    except ScoreInputUnavailable:
        raise NotFoundError(f"Rankable {item_type.value} {item_id}")
    stored = await RankingStore(db).get(item_type, item_id)
    return ScoreExplanation(
        item_type=item_type,
        item_id=item_id,
        upvotes=inputs.upvotes,
        saves=inputs.saves,
        comments=inputs.comments,
        visits=inputs.visits,
        age_hours=inputs.age_hours,
        creator_quality_score=inputs.creator_quality_score,
        promotion_active=inputs.promotion_active,
        base=breakdown.base,
        creator_factor=breakdown.creator_factor,
        promo_factor=breakdown.promo_factor,
        age_factor=breakdown.age_factor,
        abuse_factor=breakdown.abuse_factor,
        raw_score=breakdown.raw_score,
        stored_raw_score=stored.raw_score if stored else None,
        stored_norm_score=stored.norm_score if stored else None,
    )
