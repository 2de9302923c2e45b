"""Pure ranking score functions: no I/O, no framework imports.

Formula (same shape for cards and collections, only the weights differ):

    base           = w_u·ln(1+U) + w_s·ln(1+S) + w_c·ln(1+C) + w_v·ln(1+V)
    creator_factor = 1 + Q/100                 Q = creator quality, 0-100, default 50
    promo_factor   = 1 + P                     P = promotion_boost while promoted, else 0
    age_factor     = exp(-λ·age_hours)         λ = ln 2 / half_life_hours
    abuse_factor   = external multiplier in [0, 1], 1 when no signal
    raw_score      = base · creator_factor · promo_factor · age_factor · abuse_factor

Log terms keep one viral item from swamping the corpus. Collections decay seven
times slower than cards (168 h vs 48 h half-life).

Raw scores are only comparable within one batch run; ``normalise_scores``
turns them into z-scores against a corpus snapshot.
"""

from __future__ import annotations

import math
import statistics
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone

from app.models.enums import ItemType

DEFAULT_CREATOR_QUALITY: float = 50.0
DEFAULT_PROMOTION_BOOST: float = 0.5


@dataclass(frozen=True)
class WeightProfile:
    """Per-item-type scoring weights. Built once at startup, never mutated."""

    w_upvotes: float
    w_saves: float
    w_comments: float
    w_visits: float
    half_life_hours: float
    promotion_boost: float = DEFAULT_PROMOTION_BOOST

    def __post_init__(self) -> None:
        if self.half_life_hours <= 0:
            raise ValueError("half_life_hours must be positive.")

    @property
    def decay_rate(self) -> float:
        """λ in exp(-λ·t), per hour."""
        return math.log(2.0) / self.half_life_hours

    def with_overrides(self, overrides: Mapping[str, float]) -> WeightProfile:
        """Return a copy with some weights replaced. Unknown keys raise ValueError."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown weight keys: {', '.join(sorted(unknown))}")
        return replace(self, **{k: float(v) for k, v in overrides.items()})


CARD_WEIGHTS = WeightProfile(
    w_upvotes=1.0, w_saves=2.0, w_comments=2.5, w_visits=1.5, half_life_hours=48.0
)
# Collections do not track visits.
COLLECTION_WEIGHTS = WeightProfile(
    w_upvotes=0.8, w_saves=3.0, w_comments=2.0, w_visits=0.0, half_life_hours=168.0
)

DEFAULT_WEIGHT_PROFILES: Mapping[ItemType, WeightProfile] = {
    ItemType.CARD: CARD_WEIGHTS,
    ItemType.COLLECTION: COLLECTION_WEIGHTS,
}


@dataclass(frozen=True)
class ScoreInput:
    upvotes: float = 0
    saves: float = 0
    comments: float = 0
    visits: float = 0
    age_hours: float = 0.0
    creator_quality_score: float = DEFAULT_CREATOR_QUALITY
    promotion_active: bool = False
    abuse_factor: float = 1.0


@dataclass(frozen=True)
class ScoreBreakdown:
    base: float
    creator_factor: float
    promo_factor: float
    age_factor: float
    abuse_factor: float
    raw_score: float


def _engagement(count: float | None) -> float:
    """ln(1+n), with missing or negative counters treated as zero."""
    return math.log1p(max(0.0, float(count or 0)))


def hours_since(created_at: datetime, now: datetime | None = None) -> float:
    """Age in hours; naive timestamps are taken as UTC, future ones clamp to 0."""
    now = now or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return max(0.0, (now - created_at).total_seconds() / 3600.0)


def clamp_quality(quality: float | None) -> float:
    if quality is None:
        return DEFAULT_CREATOR_QUALITY
    return min(100.0, max(0.0, float(quality)))


def clamp_abuse_factor(factor: float | None) -> float:
    if factor is None:
        return 1.0
    return min(1.0, max(0.0, float(factor)))


def score_breakdown(inputs: ScoreInput, weights: WeightProfile) -> ScoreBreakdown:
    """Every factor of the formula, for inspection and the explain endpoint."""
    base = (
        weights.w_upvotes * _engagement(inputs.upvotes)
        + weights.w_saves * _engagement(inputs.saves)
        + weights.w_comments * _engagement(inputs.comments)
        + weights.w_visits * _engagement(inputs.visits)
    )
    creator_factor = 1.0 + clamp_quality(inputs.creator_quality_score) / 100.0
    promo_factor = 1.0 + (weights.promotion_boost if inputs.promotion_active else 0.0)
    age_factor = math.exp(-weights.decay_rate * max(0.0, inputs.age_hours))
    abuse_factor = clamp_abuse_factor(inputs.abuse_factor)
    return ScoreBreakdown(
        base=base,
        creator_factor=creator_factor,
        promo_factor=promo_factor,
        age_factor=age_factor,
        abuse_factor=abuse_factor,
        raw_score=base * creator_factor * promo_factor * age_factor * abuse_factor,
    )


def score(inputs: ScoreInput, weights: WeightProfile) -> float:
    """Raw ranking score. Pure: same inputs, same output."""
    return score_breakdown(inputs, weights).raw_score


def mean_and_stddev(values: Sequence[float]) -> tuple[float, float]:
    """Mean and population standard deviation; (0, 0) for an empty sequence."""
    if not values:
        return 0.0, 0.0
    # statistics works on exact fractions, so identical values give exactly 0
    return statistics.fmean(values), statistics.pstdev(values)


def normalise_scores(raw_scores: Sequence[float]) -> list[float]:
    """Z-score each value against the whole sequence.

    A degenerate population (empty, single item, all equal) maps to all zeros.
    """
    mean, stddev = mean_and_stddev(raw_scores)
    if stddev == 0.0:
        return [0.0 for _ in raw_scores]
    return [(value - mean) / stddev for value in raw_scores]
