from collections.abc import Mapping
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db
from app.dependencies import get_settings, get_weight_profiles, require_worker_key
from app.exceptions import UnprocessableError
from app.models.enums import ItemType
from app.ranking import controller
from app.ranking.schemas import (
    RankingItemOut,
    RankingStatsOut,
    RecomputeRequest,
    RecomputeResponse,
    ScoreExplanation,
)
from app.ranking.scoring import WeightProfile

router = APIRouter(
    prefix="/ranking",
    tags=["Ranking"],
    dependencies=[Depends(require_worker_key)],
)


def _item_type(value: str) -> ItemType:
    try:
        return ItemType.from_external(value)
    except ValueError as exc:
        raise UnprocessableError(str(exc))


@router.post(
    "/recompute",
    response_model=RecomputeResponse,
    summary="Recompute ranking scores (internal)",
    description=(
        "Runs the raw-score pass over every eligible card and/or collection, then "
        "re-normalizes the most recently scored rows. Per-item failures are "
        "reported in `errors` and never abort the run. With `dry_run=true` nothing "
        "is written. Requires `Authorization: Bearer <WORKER_API_KEY>`."
    ),
)
async def recompute(
    body: RecomputeRequest | None = None,
    db: AsyncSession = Depends(get_db),
    weight_profiles: Mapping[ItemType, WeightProfile] = Depends(get_weight_profiles),
    settings: Settings = Depends(get_settings),
) -> RecomputeResponse:
    return await controller.recompute(
        body or RecomputeRequest(),
        db,
        weight_profiles,
        snapshot_limit=settings.ranking_snapshot_limit,
    )


@router.get(
    "/top",
    response_model=list[RankingItemOut],
    summary="Top ranked items (admin)",
    description="Highest normalized scores for one item type, as the feed sees them.",
)
async def get_top_items(
    item_type: str = Query("card", alias="type", description="`card` or `collection` (`stack`)."),
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> list[RankingItemOut]:
    return await controller.get_top_items(_item_type(item_type), db, limit=limit, offset=offset)


@router.get(
    "/stats",
    response_model=list[RankingStatsOut],
    summary="Ranking store statistics (admin)",
    description="Per-type row count, normalized count, mean scores and last write time.",
)
async def get_stats(db: AsyncSession = Depends(get_db)) -> list[RankingStatsOut]:
    return await controller.get_stats(db)


@router.get(
    "/{item_type}/{item_id}/explain",
    response_model=ScoreExplanation,
    summary="Explain one item's score (admin)",
    description=(
        "Recomputes the score from live counters and returns every factor next to "
        "the stored raw and normalized scores. 404 when the item is not rankable."
    ),
)
async def explain(
    item_type: str = Path(description="`card` or `collection` (`stack`)."),
    item_id: UUID = Path(),
    db: AsyncSession = Depends(get_db),
    weight_profiles: Mapping[ItemType, WeightProfile] = Depends(get_weight_profiles),
) -> ScoreExplanation:
    return await controller.explain(_item_type(item_type), item_id, db, weight_profiles)
