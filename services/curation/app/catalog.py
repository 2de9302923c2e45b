"""Item-type dispatch for everything that touches card/collection tables.

``ITEM_SOURCES`` maps each ``ItemType`` to the model, eligibility filters and
counter extraction for that type. Ranking and feed code look the type up here
instead of branching on strings.

``ContentCatalog`` is the SQL-backed reader the feed uses to resolve ids into
full records.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import ColumnElement, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute, selectinload

from app.models.attribution import CardAttribution
from app.models.card import Card
from app.models.collection import Collection
from app.models.enums import CARD_STATUS_ACTIVE, ItemType


@dataclass(frozen=True)
class ScoreSource:
    """Live counters for one item, as read from its own table."""

    item_type: ItemType
    item_id: uuid.UUID
    upvotes: int = 0
    saves: int = 0
    comments: int = 0
    visits: int = 0
    created_at: datetime | None = None
    creator_quality: int | None = None
    promoted_until: datetime | None = None


@dataclass(frozen=True)
class ItemSource:
    item_type: ItemType
    model: type[Any]
    owner_column: InstrumentedAttribute[Any]
    eligibility: Callable[[], list[ColumnElement[bool]]]
    # Extra filters applied on top of eligibility when building a feed
    feed_filters: Callable[[], list[ColumnElement[bool]]]
    to_score_source: Callable[[Any, int | None], ScoreSource]
    load_options: Callable[[], list[Any]]


def _card_eligibility() -> list[ColumnElement[bool]]:
    return [Card.is_public.is_(True), Card.status == CARD_STATUS_ACTIVE]


def _card_feed_filters() -> list[ColumnElement[bool]]:
    # Cards filed inside a collection surface through that collection instead
    return [Card.collection_id.is_(None)]


def _card_score_source(card: Card, quality: int | None) -> ScoreSource:
    return ScoreSource(
        item_type=ItemType.CARD,
        item_id=card.id,
        upvotes=card.upvotes_count or 0,
        saves=card.saves_count or 0,
        comments=card.comments_count or 0,
        visits=card.visits_count or 0,
        created_at=card.created_at,
        creator_quality=quality,
    )


def _collection_eligibility() -> list[ColumnElement[bool]]:
    return [Collection.is_public.is_(True), Collection.is_hidden.is_(False)]


def _collection_score_source(collection: Collection, quality: int | None) -> ScoreSource:
    stats = collection.stats or {}
    if not isinstance(stats, dict):
        raise TypeError(f"Collection {collection.id} has malformed stats: {stats!r}")
    return ScoreSource(
        item_type=ItemType.COLLECTION,
        item_id=collection.id,
        upvotes=stats.get("upvotes") or 0,
        saves=stats.get("saves") or 0,
        comments=stats.get("comments") or 0,
        created_at=collection.created_at,
        creator_quality=quality,
        promoted_until=collection.promoted_until,
    )


ITEM_SOURCES: dict[ItemType, ItemSource] = {
    ItemType.CARD: ItemSource(
        item_type=ItemType.CARD,
        model=Card,
        owner_column=Card.created_by,
        eligibility=_card_eligibility,
        feed_filters=_card_feed_filters,
        to_score_source=_card_score_source,
        load_options=lambda: [selectinload(Card.creator)],
    ),
    ItemType.COLLECTION: ItemSource(
        item_type=ItemType.COLLECTION,
        model=Collection,
        owner_column=Collection.owner_id,
        eligibility=_collection_eligibility,
        feed_filters=lambda: [],
        to_score_source=_collection_score_source,
        load_options=lambda: [selectinload(Collection.owner), selectinload(Collection.tags)],
    ),
}


def get_item_source(item_type: ItemType) -> ItemSource:
    return ITEM_SOURCES[item_type]


class ContentCatalog:
    """Resolves feed candidates against the live content tables."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def recent_ids(self, item_type: ItemType, limit: int) -> list[uuid.UUID]:
        """Newest eligible items, used when no ranking data exists for the type."""
        source = get_item_source(item_type)
        model = source.model
        q = (
            select(model.id)
            .where(*source.eligibility(), *source.feed_filters())
            .order_by(model.created_at.desc())
            .limit(limit)
        )
        return list((await self._db.execute(q)).scalars().all())

    async def hydrate(self, item_type: ItemType, ids: Sequence[uuid.UUID]) -> dict[uuid.UUID, Any]:
        """Full records for the ids that are still live. Missing ids are simply absent."""
        if not ids:
            return {}
        source = get_item_source(item_type)
        model = source.model
        q = (
            select(model)
            .options(*source.load_options())
            .where(model.id.in_(ids), *source.eligibility(), *source.feed_filters())
        )
        return {row.id: row for row in (await self._db.execute(q)).scalars().all()}

    async def attributions_for(
        self, card_ids: Sequence[uuid.UUID]
    ) -> dict[uuid.UUID, list[CardAttribution]]:
        if not card_ids:
            return {}
        q = (
            select(CardAttribution)
            .options(selectinload(CardAttribution.user))
            .where(CardAttribution.card_id.in_(card_ids))
            .order_by(CardAttribution.created_at.asc())
        )
        grouped: dict[uuid.UUID, list[CardAttribution]] = {cid: [] for cid in card_ids}
        for attribution in (await self._db.execute(q)).scalars().all():
            grouped[attribution.card_id].append(attribution)
        return grouped
