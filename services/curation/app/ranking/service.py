"""Ranking service: batch score recomputation, pure business logic, no FastAPI imports.

Two sequential passes:

1. Raw pass: every eligible item of each requested type is scored from its
   live counters and its ``raw_score`` upserted. One item's failure is logged
   and recorded, never fatal to the batch.
2. Normalization pass: the most recently re-scored ``snapshot_limit`` rows are
   z-scored against each other and their ``norm_score`` rewritten.

Every database stage runs in its own savepoint, so a failure in one leaves the
batch transaction usable for the rest.

Scoring is a pure function of current counters and wall-clock time, so the job
is idempotent and safe to retry; overlapping runs converge per key.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from contextlib import AbstractAsyncContextManager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from app.catalog import ScoreSource
from app.models.enums import ItemType
from app.models.ranking import RankingItem
from app.ranking.scoring import (
    ScoreBreakdown,
    ScoreInput,
    WeightProfile,
    normalise_scores,
    score,
    score_breakdown,
)
from app.ranking.store import NormUpdate

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_LIMIT: int = 10_000

STAGE_LOAD = "load"
STAGE_SCORE = "score"
STAGE_NORMALIZE = "normalize"


class RankingStoreLike(Protocol):
    async def upsert(
        self,
        item_type: ItemType,
        item_id: uuid.UUID,
        *,
        raw_score: float | None = None,
        norm_score: float | None = None,
    ) -> None: ...

    async def query_snapshot(self, limit: int) -> list[RankingItem]: ...

    async def bulk_set_norm_scores(self, rows: list[NormUpdate]) -> int: ...

    def savepoint(self) -> AbstractAsyncContextManager[Any]: ...


class ScoreInputsLike(Protocol):
    async def load_sources(
        self, item_type: ItemType, changed_since: datetime | None = None
    ) -> list[ScoreSource]: ...

    async def build_input(self, source: ScoreSource, now: datetime | None = None) -> ScoreInput: ...

    async def get_input(
        self, item_type: ItemType, item_id: uuid.UUID, now: datetime | None = None
    ) -> ScoreInput: ...


@dataclass
class RecomputeError:
    error: str
    stage: str = STAGE_SCORE
    item_type: ItemType | None = None
    item_id: uuid.UUID | None = None


@dataclass
class RecomputeResult:
    cards_processed: int = 0
    collections_processed: int = 0
    normalized: int = 0
    dry_run: bool = False
    errors: list[RecomputeError] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.cards_processed + self.collections_processed

    def count(self, item_type: ItemType) -> None:
        if item_type is ItemType.CARD:
            self.cards_processed += 1
        else:
            self.collections_processed += 1

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["succeeded"] = self.succeeded
        for err in data["errors"]:
            err["item_type"] = err["item_type"].value if err["item_type"] else None
            err["item_id"] = str(err["item_id"]) if err["item_id"] else None
        return data


async def _raw_pass(
    item_type: ItemType,
    provider: ScoreInputsLike,
    store: RankingStoreLike,
    weights: WeightProfile,
    result: RecomputeResult,
    *,
    changed_since: datetime | None,
    now: datetime,
    dry_run: bool,
) -> dict[tuple[ItemType, uuid.UUID], float]:
    fresh: dict[tuple[ItemType, uuid.UUID], float] = {}
    try:
        sources = await provider.load_sources(item_type, changed_since)
    except Exception as exc:
        logger.exception("Could not load %s score inputs", item_type.value)
        result.errors.append(RecomputeError(error=str(exc), stage=STAGE_LOAD, item_type=item_type))
        return fresh

    for source in sources:
        try:
            inputs = await provider.build_input(source, now)
            raw_score = score(inputs, weights)
            if not dry_run:
                await store.upsert(item_type, source.item_id, raw_score=raw_score)
        except Exception as exc:
            logger.warning("Scoring %s %s failed: %s", item_type.value, source.item_id, exc)
            result.errors.append(
                RecomputeError(error=str(exc), item_type=item_type, item_id=source.item_id)
            )
            continue
        fresh[(item_type, source.item_id)] = raw_score
        result.count(item_type)
    return fresh


async def _normalization_pass(
    store: RankingStoreLike,
    fresh: Mapping[tuple[ItemType, uuid.UUID], float],
    *,
    snapshot_limit: int,
    dry_run: bool,
) -> int:
    if dry_run:
        return len(normalise_scores(list(fresh.values())))

    # Own savepoint: a failed read or write keeps the raw scores already written
    async with store.savepoint():
        snapshot = await store.query_snapshot(snapshot_limit)
        norm_scores = normalise_scores([row.raw_score or 0.0 for row in snapshot])
        updates = [
            NormUpdate(item_type=row.item_type, item_id=row.item_id, norm_score=norm)
            for row, norm in zip(snapshot, norm_scores)
        ]
        return await store.bulk_set_norm_scores(updates)


async def recompute(
    store: RankingStoreLike,
    provider: ScoreInputsLike,
    weight_profiles: Mapping[ItemType, WeightProfile],
    *,
    item_type: ItemType | None = None,
    changed_since_days: int | None = None,
    dry_run: bool = False,
    snapshot_limit: int = DEFAULT_SNAPSHOT_LIMIT,
    now: datetime | None = None,
) -> RecomputeResult:
    """Recompute raw scores for the scoped population, then renormalize.

    ``dry_run`` computes every score and the normalization over the fresh raw
    scores but writes nothing.
    """
    now = now or datetime.now(timezone.utc)
    changed_since = now - timedelta(days=changed_since_days) if changed_since_days else None
    item_types = [item_type] if item_type is not None else list(ItemType)
    result = RecomputeResult(dry_run=dry_run)

    logger.info(
        "Ranking recompute started: types=%s changed_since=%s dry_run=%s",
        ",".join(t.value for t in item_types),
        changed_since.isoformat() if changed_since else "all",
        dry_run,
    )

    fresh: dict[tuple[ItemType, uuid.UUID], float] = {}
    for current in item_types:
        fresh.update(
            await _raw_pass(
                current,
                provider,
                store,
                weight_profiles[current],
                result,
                changed_since=changed_since,
                now=now,
                dry_run=dry_run,
            )
        )

    try:
        result.normalized = await _normalization_pass(
            store, fresh, snapshot_limit=snapshot_limit, dry_run=dry_run
        )
    except Exception as exc:
        logger.exception("Ranking normalization pass failed")
        result.errors.append(RecomputeError(error=str(exc), stage=STAGE_NORMALIZE))

    logger.info(
        "Ranking recompute finished: cards=%d collections=%d normalized=%d errors=%d",
        result.cards_processed,
        result.collections_processed,
        result.normalized,
        len(result.errors),
    )
    return result


async def explain(
    provider: ScoreInputsLike,
    weight_profiles: Mapping[ItemType, WeightProfile],
    item_type: ItemType,
    item_id: uuid.UUID,
    now: datetime | None = None,
) -> tuple[ScoreInput, ScoreBreakdown]:
    """Live score breakdown for one item. Raises ScoreInputUnavailable."""
    inputs = await provider.get_input(item_type, item_id, now)
    return inputs, score_breakdown(inputs, weight_profiles[item_type])
