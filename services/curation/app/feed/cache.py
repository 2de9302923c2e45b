"""Redis cache helpers for the feed domain.

Key schema
----------
feed:page:{type}:{cards}:{collections}:{limit}:{offset}   JSON   TTL feed_cache_ttl_s

Ratios in the key are normalized, so "cards:3,stacks:1" and
"cards:0.75,stacks:0.25" share one entry. Cache errors are logged and
swallowed: a Redis outage degrades to uncached reads, never a failed feed.
"""

import json
import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.feed.mixer import FeedType, MixRatio

logger = logging.getLogger(__name__)


def page_key(feed_type: FeedType, mix: MixRatio, limit: int, offset: int) -> str:
    ratio = mix.normalised()
    return (
        f"feed:page:{feed_type.value}:{ratio.cards:.4f}:{ratio.collections:.4f}"
        f":{limit}:{offset}"
    )


async def get_page(key: str, redis: Redis) -> dict | None:
    """Return the cached response payload, or None on miss or Redis error."""
    try:
        val = await redis.get(key)
    except RedisError as exc:
        logger.warning("Feed cache read failed for %s: %s", key, exc)
        return None
    return json.loads(val) if val is not None else None


async def set_page(key: str, payload: dict, ttl_s: int, redis: Redis) -> None:
    try:
        await redis.setex(key, ttl_s, json.dumps(payload))
    except RedisError as exc:
        logger.warning("Feed cache write failed for %s: %s", key, exc)
