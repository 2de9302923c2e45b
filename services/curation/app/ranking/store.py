"""Ranking Store: PostgreSQL access to ``explore_ranking_items``.

The batch worker is the only writer; the feed only calls ``query_top``.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction

from app.models.enums import ItemType
from app.models.ranking import RankingItem
from app.ranking.exceptions import EmptyScoreUpdate

# Rows per executemany round-trip in the normalization write-back
_NORM_WRITE_CHUNK: int = 1000


@dataclass(frozen=True)
class NormUpdate:
    item_type: ItemType
    item_id: uuid.UUID
    norm_score: float


@dataclass(frozen=True)
class RankingStats:
    item_type: ItemType
    item_count: int
    normalized_count: int
    mean_raw_score: float
    mean_norm_score: float | None
    last_updated_at: datetime | None


class RankingStore:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    def savepoint(self) -> AsyncSessionTransaction:
        """Savepoint for a multi-statement stage (``async with store.savepoint():``).

        A failure inside rolls back that stage only; the batch transaction stays
        usable and keeps the work committed before it.
        """
        return self._db.begin_nested()

    async def upsert(
        self,
        item_type: ItemType,
        item_id: uuid.UUID,
        *,
        raw_score: float | None = None,
        norm_score: float | None = None,
    ) -> None:
        """Insert or replace the given score columns for one item.

        Runs in its own savepoint: a failed write rolls back alone and leaves
        the surrounding batch transaction usable.
        """
        values: dict[str, object] = {}
        if raw_score is not None:
            values["raw_score"] = raw_score
            values["updated_at"] = datetime.now(timezone.utc)
        if norm_score is not None:
            values["norm_score"] = norm_score
        if not values:
            raise EmptyScoreUpdate(f"Nothing to write for {item_type.value} {item_id}.")

        stmt = pg_insert(RankingItem).values(item_type=item_type, item_id=item_id, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[RankingItem.item_type, RankingItem.item_id],
            set_={column: stmt.excluded[column] for column in values},
        )
        async with self._db.begin_nested():
            await self._db.execute(stmt)

    async def get(self, item_type: ItemType, item_id: uuid.UUID) -> RankingItem | None:
        q = select(RankingItem).where(
            RankingItem.item_type == item_type, RankingItem.item_id == item_id
        )
        return (await self._db.execute(q)).scalar_one_or_none()

    async def query_top(
        self, item_type: ItemType, limit: int, offset: int = 0
    ) -> list[RankingItem]:
        """Best normalized rows for a type. Rows not yet normalized are skipped."""
        q = (
            select(RankingItem)
            .where(RankingItem.item_type == item_type, RankingItem.norm_score.is_not(None))
            .order_by(RankingItem.norm_score.desc(), RankingItem.updated_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list((await self._db.execute(q)).scalars().all())

    async def query_snapshot(self, limit: int) -> list[RankingItem]:
        """Most recently re-scored rows across both types (normalization window)."""
        q = select(RankingItem).order_by(RankingItem.updated_at.desc()).limit(limit)
        return list((await self._db.execute(q)).scalars().all())

    async def bulk_set_norm_scores(self, rows: Sequence[NormUpdate]) -> int:
        """Write normalized scores by primary key. ``updated_at`` is left alone."""
        for start in range(0, len(rows), _NORM_WRITE_CHUNK):
            chunk = rows[start : start + _NORM_WRITE_CHUNK]
            await self._db.execute(
                update(RankingItem),
                [
                    {"item_type": r.item_type, "item_id": r.item_id, "norm_score": r.norm_score}
                    for r in chunk
                ],
            )
        return len(rows)

    async def stats(self) -> list[RankingStats]:
        q = (
            select(
                RankingItem.item_type,
                func.count().label("item_count"),
                func.count(RankingItem.norm_score).label("normalized_count"),
                func.coalesce(func.avg(RankingItem.raw_score), 0.0).label("mean_raw"),
                func.avg(RankingItem.norm_score).label("mean_norm"),
                func.max(RankingItem.updated_at).label("last_updated_at"),
            )
            .group_by(RankingItem.item_type)
            .order_by(RankingItem.item_type)
        )
        return [
            RankingStats(
                item_type=row.item_type,
                item_count=row.item_count,
                normalized_count=row.normalized_count,
                mean_raw_score=float(row.mean_raw),
                mean_norm_score=float(row.mean_norm) if row.mean_norm is not None else None,
                last_updated_at=row.last_updated_at,
            )
            for row in (await self._db.execute(q)).all()
        ]
