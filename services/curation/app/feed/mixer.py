"""Pure feed-mixing functions: no I/O, no framework imports.

The mix ratio only decides how many candidates of each type enter the pool;
final positions come from one global sort by score, so strong items of one
type can outrank the other type's whole candidate set.
"""

from __future__ import annotations

import enum
import math
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from app.feed.exceptions import InvalidFeedTypeError, InvalidMixError
from app.models.enums import ItemType

DEFAULT_MIX = "cards:0.6,stacks:0.4"
DEFAULT_CARDS_RATIO: float = 0.6
DEFAULT_COLLECTIONS_RATIO: float = 0.4

# Candidates fetched per slot, leaving slack for dedup losses and dead ids
OVERFETCH_FACTOR: int = 2

_MIX_KEYS: dict[str, ItemType] = {
    "cards": ItemType.CARD,
    "card": ItemType.CARD,
    "stacks": ItemType.COLLECTION,
    "stack": ItemType.COLLECTION,
    "collections": ItemType.COLLECTION,
    "collection": ItemType.COLLECTION,
}


class FeedType(str, enum.Enum):
    CARD = "card"
    COLLECTION = "collection"
    BOTH = "both"

    @classmethod
    def parse(cls, value: str) -> FeedType:
        key = value.strip().lower()
        if key == "both":
            return cls.BOTH
        try:
            item_type = ItemType.from_external(key)
        except ValueError:
            raise InvalidFeedTypeError(f"Unknown feed type '{value}'.") from None
        return cls.CARD if item_type is ItemType.CARD else cls.COLLECTION

    @property
    def item_types(self) -> tuple[ItemType, ...]:
        """Requested types in fetch order; cards first so they win score ties."""
        if self is FeedType.BOTH:
            return (ItemType.CARD, ItemType.COLLECTION)
        return (ItemType(self.value),)


@dataclass(frozen=True)
class MixRatio:
    cards: float = DEFAULT_CARDS_RATIO
    collections: float = DEFAULT_COLLECTIONS_RATIO

    @classmethod
    def parse(cls, raw: str | None) -> MixRatio:
        """Parse ``"cards:R1,stacks:R2"``.

        Omitted types keep their default ratio; unknown keys are ignored.
        Ratios must be non-negative numbers and must not both be zero.
        """
        ratios = {ItemType.CARD: DEFAULT_CARDS_RATIO, ItemType.COLLECTION: DEFAULT_COLLECTIONS_RATIO}
        for part in (raw or "").split(","):
            if not part.strip():
                continue
            key, sep, value = part.partition(":")
            if not sep:
                raise InvalidMixError(f"Mix entry '{part.strip()}' must look like 'cards:0.6'.")
            item_type = _MIX_KEYS.get(key.strip().lower())
            if item_type is None:
                continue
            try:
                ratio = float(value.strip())
            except ValueError:
                raise InvalidMixError(f"Mix ratio '{value.strip()}' is not a number.") from None
            if not math.isfinite(ratio) or ratio < 0:
                raise InvalidMixError(f"Mix ratio for '{key.strip()}' must be >= 0.")
            ratios[item_type] = ratio
        mix = cls(cards=ratios[ItemType.CARD], collections=ratios[ItemType.COLLECTION])
        if mix.cards + mix.collections <= 0:
            raise InvalidMixError("Mix ratios must not all be zero.")
        return mix

    def normalised(self) -> MixRatio:
        total = self.cards + self.collections
        return MixRatio(cards=self.cards / total, collections=self.collections / total)

    def share(self, item_type: ItemType) -> float:
        mix = self.normalised()
        return mix.cards if item_type is ItemType.CARD else mix.collections


def fetch_quotas(feed_type: FeedType, mix: MixRatio, window: int) -> dict[ItemType, int]:
    """Candidates to fetch per type for a page ending at ``window`` items.

    A single-type feed gives that type the whole window.
    """
    item_types = feed_type.item_types
    quotas: dict[ItemType, int] = {}
    for item_type in item_types:
        share = 1.0 if len(item_types) == 1 else mix.share(item_type)
        quotas[item_type] = math.ceil(OVERFETCH_FACTOR * window * share)
    return quotas


@dataclass
class FeedEntry:
    """One scored candidate. ``record`` is the hydrated card or collection."""

    item_type: ItemType
    item_id: uuid.UUID
    score: float = 0.0
    record: Any = None
    canonical_url: str | None = None
    attributions: list[Any] = field(default_factory=list)


def rank_entries(entries: Iterable[FeedEntry]) -> list[FeedEntry]:
    """Score descending. Stable, so ties keep fetch order."""
    return sorted(entries, key=lambda e: e.score, reverse=True)


def dedupe_cards(entries: Sequence[FeedEntry]) -> list[FeedEntry]:
    """Collapse cards sharing a canonical URL into the first one seen.

    The survivor collects every duplicate's attributions and takes the highest
    score among them. Collections, and cards without a URL, pass through.
    """
    survivors: dict[str, FeedEntry] = {}
    result: list[FeedEntry] = []
    for entry in entries:
        if entry.item_type is not ItemType.CARD or not entry.canonical_url:
            result.append(entry)
            continue
        kept = survivors.get(entry.canonical_url)
        if kept is None:
            survivors[entry.canonical_url] = entry
            result.append(entry)
            continue
        for attribution in entry.attributions:
            if attribution not in kept.attributions:
                kept.attributions.append(attribution)
        if entry.score > kept.score:
            kept.score = entry.score
    return result


def merge_feed(entries: Iterable[FeedEntry]) -> list[FeedEntry]:
    """Sort, dedupe, and re-sort (dedup may raise a survivor's score)."""
    return rank_entries(dedupe_cards(rank_entries(entries)))
