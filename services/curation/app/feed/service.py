"""Feed service: request-time feed assembly, pure business logic, no FastAPI imports.

Algorithm
---------
1. Per requested type, take a candidate quota sized by the mix ratio
   (2x over-fetch of the page window).
2. Read the top ``quota`` normalized rows from the ranking store; when the
   store has nothing for the type, fall back to the newest eligible items.
3. Hydrate records (dangling ids drop out) and attach card attributions.
4. Merge both types, sort by score, collapse duplicate canonical URLs,
   re-sort, and slice the requested page.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from typing import Any, Protocol

from app.feed.mixer import FeedEntry, FeedType, MixRatio, fetch_quotas, merge_feed
from app.models.enums import ItemType
from app.models.ranking import RankingItem

logger = logging.getLogger(__name__)


class RankingReader(Protocol):
    async def query_top(
        self, item_type: ItemType, limit: int, offset: int = 0
    ) -> list[RankingItem]: ...


class ContentReader(Protocol):
    async def recent_ids(self, item_type: ItemType, limit: int) -> list[uuid.UUID]: ...

    async def hydrate(
        self, item_type: ItemType, ids: Sequence[uuid.UUID]
    ) -> dict[uuid.UUID, Any]: ...

    async def attributions_for(
        self, card_ids: Sequence[uuid.UUID]
    ) -> dict[uuid.UUID, list[Any]]: ...


async def _collect_candidates(
    ranking: RankingReader,
    content: ContentReader,
    item_type: ItemType,
    quota: int,
) -> list[FeedEntry]:
    ranked = await ranking.query_top(item_type, quota)
    scores = {row.item_id: row.norm_score or 0.0 for row in ranked}
    ids = [row.item_id for row in ranked]

    if not ids:
        logger.info("No ranking data for %s; falling back to recency", item_type.value)
        ids = await content.recent_ids(item_type, quota)

    records = await content.hydrate(item_type, ids)
    if len(records) < len(ids):
        logger.debug(
            "Dropped %d stale %s ids during hydration", len(ids) - len(records), item_type.value
        )

    attributions: dict[uuid.UUID, list[Any]] = {}
    if item_type is ItemType.CARD and records:
        attributions = await content.attributions_for(list(records))

    entries: list[FeedEntry] = []
    for item_id in ids:
        record = records.get(item_id)
        if record is None:
            continue
        entries.append(
            FeedEntry(
                item_type=item_type,
                item_id=item_id,
                score=scores.get(item_id, 0.0),
                record=record,
                canonical_url=getattr(record, "canonical_url", None)
                if item_type is ItemType.CARD
                else None,
                attributions=list(attributions.get(item_id, [])),
            )
        )
    return entries


async def get_feed(
    ranking: RankingReader,
    content: ContentReader,
    feed_type: FeedType = FeedType.BOTH,
    mix: MixRatio | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[FeedEntry], int]:
    """Return (page_entries, total) where total is the deduplicated pool size."""
    mix = mix or MixRatio()
    quotas = fetch_quotas(feed_type, mix, offset + limit)

    candidates: list[FeedEntry] = []
    for item_type in feed_type.item_types:
        if quotas[item_type] <= 0:
            continue
        candidates.extend(await _collect_candidates(ranking, content, item_type, quotas[item_type]))

    merged = merge_feed(candidates)
    return merged[offset : offset + limit], len(merged)
