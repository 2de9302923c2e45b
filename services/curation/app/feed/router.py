from fastapi import APIRouter, Depends, Query, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db
from app.dependencies import get_redis, get_settings
from app.feed import controller
from app.feed.mixer import DEFAULT_MIX
from app.feed.schemas import FeedResponse
from app.rate_limit import FEED_RATE_LIMIT, limiter

router = APIRouter(prefix="/feed", tags=["Feed"])


@router.get(
    "",
    response_model=FeedResponse,
    summary="Mixed explore feed",
    description=(
        "Blends ranked cards and collections into one page ordered by normalized "
        "score. `mix` sets how many candidates of each type enter the pool "
        "(2x over-fetch), not their final positions. Cards sharing a canonical URL "
        "are collapsed into one entry carrying every attribution. Falls back to "
        "newest items when no ranking data exists. Cached for 60 s. No auth required."
    ),
)
@limiter.limit(FEED_RATE_LIMIT)
async def get_feed(
    request: Request,
    feed_type: str = Query(
        "both",
        alias="type",
        description="`card`, `stack` (collection) or `both`.",
    ),
    mix: str = Query(
        DEFAULT_MIX,
        description="Candidate ratio, e.g. `cards:0.6,stacks:0.4`. Normalized to sum to 1.",
    ),
    limit: int = Query(50, ge=1, le=100, description="Page size."),
    offset: int = Query(0, ge=0, le=500, description="Pagination offset."),
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> FeedResponse:
    return await controller.get_feed(
        db,
        redis,
        feed_type=feed_type,
        mix=mix,
        limit=limit,
        offset=offset,
        cache_ttl_s=settings.feed_cache_ttl_s if settings.feed_cache_enabled else None,
    )
