"""Feed controller: orchestration layer between router and service."""

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.catalog import ContentCatalog
from app.exceptions import UnprocessableError
from app.feed import cache as feed_cache
from app.feed import service
from app.feed.exceptions import InvalidFeedTypeError, InvalidMixError
from app.feed.mixer import FeedEntry, FeedType, MixRatio
from app.feed.schemas import (
    AttributionSummary,
    CardFeedItem,
    CollectionFeedItem,
    FeedResponse,
)
from app.models.enums import ItemType
from app.ranking.store import RankingStore


def to_feed_item(entry: FeedEntry) -> CardFeedItem | CollectionFeedItem:
    if entry.item_type is ItemType.CARD:
        return CardFeedItem.model_validate(entry.record).model_copy(
            update={
                "score": entry.score,
                "attributions": [AttributionSummary.model_validate(a) for a in entry.attributions],
            }
        )
    return CollectionFeedItem.model_validate(entry.record).model_copy(update={"score": entry.score})


def parse_feed_params(feed_type: str, mix: str | None) -> tuple[FeedType, MixRatio]:
    try:
        return FeedType.parse(feed_type), MixRatio.parse(mix)
    except (InvalidFeedTypeError, InvalidMixError) as exc:
        raise UnprocessableError(str(exc))


async def get_feed(
    db: AsyncSession,
    redis: Redis | None,
    feed_type: str = "both",
    mix: str | None = None,
    limit: int = 50,
    offset: int = 0,
    cache_ttl_s: int | None = 60,
) -> FeedResponse:
    """Mixed feed page. ``cache_ttl_s=None`` or ``redis=None`` bypasses the cache."""
    parsed_type, parsed_mix = parse_feed_params(feed_type, mix)

    key = feed_cache.page_key(parsed_type, parsed_mix, limit, offset)
    use_cache = redis is not None and cache_ttl_s is not None
    if use_cache:
        cached = await feed_cache.get_page(key, redis)
        if cached is not None:
            return FeedResponse.model_validate({**cached, "cached": True})

    entries, total = await service.get_feed(
        RankingStore(db),
        ContentCatalog(db),
        feed_type=parsed_type,
        mix=parsed_mix,
        limit=limit,
        offset=offset,
    )
    response = FeedResponse(
        feed=[to_feed_item(e) for e in entries],
        total=total,
        limit=limit,
        offset=offset,
    )
    if use_cache:
        await feed_cache.set_page(key, response.model_dump(mode="json"), cache_ttl_s, redis)
    return response
