"""Score Inputs Provider: reads live engagement counters for the batch worker."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.catalog import ScoreSource, get_item_source
from app.models.enums import ItemType
from app.models.user import User
from app.ranking.exceptions import ScoreInputUnavailable
from app.ranking.scoring import ScoreInput, clamp_abuse_factor, clamp_quality, hours_since


class AbuseSignal(Protocol):
    """Fraud/abuse multiplier supplier. Must return a value in [0, 1]."""

    async def factor(self, item_type: ItemType, item_id: uuid.UUID) -> float: ...


class NoAbuseSignal:
    """No fraud model is wired in yet: every item keeps its full score."""

    async def factor(self, item_type: ItemType, item_id: uuid.UUID) -> float:
        return 1.0


class ScoreInputsProvider:
    def __init__(self, db: AsyncSession, abuse_signal: AbuseSignal | None = None) -> None:
        self._db = db
        self._abuse_signal = abuse_signal or NoAbuseSignal()

    def _source_query(self, item_type: ItemType):
        source = get_item_source(item_type)
        return (
            select(source.model, User.quality_score)
            .outerjoin(User, User.id == source.owner_column)
            .where(*source.eligibility())
        )

    async def load_sources(
        self, item_type: ItemType, changed_since: datetime | None = None
    ) -> list[ScoreSource]:
        """All eligible items of one type, optionally only recently updated ones.

        Rows whose counters cannot be read are returned as bare sources with no
        ``created_at`` so the worker reports them instead of silently skipping.
        """
        source = get_item_source(item_type)
        q = self._source_query(item_type)
        if changed_since is not None:
            q = q.where(source.model.updated_at >= changed_since)
        q = q.order_by(source.model.id)

        # A failed read must not abort the caller's batch transaction
        async with self._db.begin_nested():
            rows = (await self._db.execute(q)).all()

        sources: list[ScoreSource] = []
        for item, quality in rows:
            try:
                sources.append(source.to_score_source(item, quality))
            except (TypeError, ValueError):
                sources.append(ScoreSource(item_type=item_type, item_id=item.id))
        return sources

    async def build_input(self, source: ScoreSource, now: datetime | None = None) -> ScoreInput:
        if source.created_at is None:
            raise ScoreInputUnavailable(source.item_type, source.item_id, "missing counters")
        now = now or datetime.now(timezone.utc)
        promoted_until = source.promoted_until
        if promoted_until is not None and promoted_until.tzinfo is None:
            promoted_until = promoted_until.replace(tzinfo=timezone.utc)
        abuse = await self._abuse_signal.factor(source.item_type, source.item_id)
        return ScoreInput(
            upvotes=source.upvotes,
            saves=source.saves,
            comments=source.comments,
            visits=source.visits,
            age_hours=hours_since(source.created_at, now),
            creator_quality_score=clamp_quality(source.creator_quality),
            promotion_active=promoted_until is not None and promoted_until > now,
            abuse_factor=clamp_abuse_factor(abuse),
        )

    async def get_input(
        self, item_type: ItemType, item_id: uuid.UUID, now: datetime | None = None
    ) -> ScoreInput:
        """Current inputs for a single eligible item. Raises ScoreInputUnavailable."""
        source = get_item_source(item_type)
        q = self._source_query(item_type).where(source.model.id == item_id)
        row = (await self._db.execute(q)).first()
        if row is None:
            raise ScoreInputUnavailable(item_type, item_id)
        item, quality = row
        try:
            score_source = source.to_score_source(item, quality)
        except (TypeError, ValueError) as exc:
            raise ScoreInputUnavailable(item_type, item_id, str(exc)) from exc
        return await self.build_input(score_source, now)
