import uuid

import pytest

from app.catalog import ScoreSource
from app.models.enums import ItemType
from app.ranking import service
from app.ranking.scoring import DEFAULT_WEIGHT_PROFILES
from conftest import NOW, InMemoryRankingStore, StaticScoreInputs, card_source, collection_source


async def _run(store, provider, **kwargs):
    return await service.recompute(store, provider, DEFAULT_WEIGHT_PROFILES, now=NOW, **kwargs)


@pytest.mark.asyncio
async def test_recompute_writes_raw_and_norm_scores() -> None:
    store = InMemoryRankingStore()
    cards = [card_source(upvotes=n) for n in (1, 10, 100)]
    stack = collection_source()
    provider = StaticScoreInputs([*cards, stack])

    result = await _run(store, provider)

    assert result.cards_processed == 3
    assert result.collections_processed == 1
    assert result.succeeded == 4
    assert result.normalized == 4
    assert result.errors == []
    assert set(store.rows) == {(ItemType.CARD, c.item_id) for c in cards} | {
        (ItemType.COLLECTION, stack.item_id)
    }
    norms = [row.norm_score for row in store.rows.values()]
    assert all(n is not None for n in norms)
    assert sum(norms) == pytest.approx(0.0, abs=1e-9)


@pytest.mark.asyncio
async def test_worked_example_through_the_batch() -> None:
    store = InMemoryRankingStore()
    card = card_source()

    await _run(store, StaticScoreInputs([card]), item_type=ItemType.CARD)

    row = store.rows[(ItemType.CARD, card.item_id)]
    assert row.raw_score == pytest.approx(9.69, abs=0.01)
    # A single-row snapshot is degenerate
    assert row.norm_score == 0.0


@pytest.mark.asyncio
async def test_recompute_twice_gives_same_scores() -> None:
    store = InMemoryRankingStore()
    provider = StaticScoreInputs([card_source(upvotes=n) for n in (0, 3, 9)])

    await _run(store, provider)
    first = {k: (r.raw_score, r.norm_score) for k, r in store.rows.items()}
    await _run(store, provider)
    second = {k: (r.raw_score, r.norm_score) for k, r in store.rows.items()}

    assert first == second


@pytest.mark.asyncio
async def test_missing_inputs_are_reported_and_batch_continues() -> None:
    store = InMemoryRankingStore()
    broken = ScoreSource(item_type=ItemType.COLLECTION, item_id=uuid.uuid4())
    good = collection_source()

    result = await _run(store, StaticScoreInputs([broken, good]))

    assert result.collections_processed == 1
    assert len(result.errors) == 1
    err = result.errors[0]
    assert err.stage == service.STAGE_SCORE
    assert err.item_id == broken.item_id
    assert (ItemType.COLLECTION, broken.item_id) not in store.rows
    assert (ItemType.COLLECTION, good.item_id) in store.rows


@pytest.mark.asyncio
async def test_write_failure_is_isolated_to_one_item() -> None:
    store = InMemoryRankingStore()
    cards = [card_source() for _ in range(3)]
    store.failing_ids.add(cards[1].item_id)

    result = await _run(store, StaticScoreInputs(cards))

    assert result.cards_processed == 2
    assert [e.item_id for e in result.errors] == [cards[1].item_id]
    assert "write rejected" in result.errors[0].error


@pytest.mark.asyncio
async def test_load_failure_for_one_type_keeps_the_other() -> None:
    store = InMemoryRankingStore()
    provider = StaticScoreInputs([card_source(), collection_source()])
    provider.failing_types.add(ItemType.CARD)

    result = await _run(store, provider)

    assert result.cards_processed == 0
    assert result.collections_processed == 1
    assert [(e.stage, e.item_type) for e in result.errors] == [
        (service.STAGE_LOAD, ItemType.CARD)
    ]


@pytest.mark.asyncio
async def test_dry_run_writes_nothing() -> None:
    store = InMemoryRankingStore()
    provider = StaticScoreInputs([card_source(upvotes=1), card_source(upvotes=50)])

    result = await _run(store, provider, dry_run=True)

    assert result.dry_run is True
    assert result.cards_processed == 2
    assert result.normalized == 2
    assert store.rows == {}


@pytest.mark.asyncio
async def test_item_type_scopes_the_raw_pass() -> None:
    store = InMemoryRankingStore()
    provider = StaticScoreInputs([card_source(), collection_source()])

    result = await _run(store, provider, item_type=ItemType.COLLECTION)

    assert result.cards_processed == 0
    assert result.collections_processed == 1
    assert {k[0] for k in store.rows} == {ItemType.COLLECTION}


@pytest.mark.asyncio
async def test_normalization_covers_only_the_snapshot_window() -> None:
    store = InMemoryRankingStore()
    stale = store.put(ItemType.CARD, uuid.uuid4(), raw_score=99.0, norm_score=7.0)
    provider = StaticScoreInputs([card_source(upvotes=1), card_source(upvotes=30)])

    result = await _run(store, provider, snapshot_limit=2)

    assert result.normalized == 2
    # Oldest row fell out of the window and keeps its previous norm score
    assert stale.norm_score == 7.0


@pytest.mark.asyncio
async def test_as_dict_serialises_errors() -> None:
    store = InMemoryRankingStore()
    broken = ScoreSource(item_type=ItemType.CARD, item_id=uuid.uuid4())

    data = (await _run(store, StaticScoreInputs([broken]))).as_dict()

    assert data["succeeded"] == 0
    assert data["errors"][0]["item_type"] == "card"
    assert data["errors"][0]["item_id"] == str(broken.item_id)


@pytest.mark.asyncio
async def test_failed_normalization_rolls_back_norm_scores_only() -> None:
    store = InMemoryRankingStore()
    card = card_source(upvotes=5)
    store.put(ItemType.CARD, card.item_id, raw_score=1.0, norm_score=0.25)
    store.fail_norm_writes = True

    result = await _run(store, StaticScoreInputs([card, card_source(upvotes=40)]))

    assert result.cards_processed == 2
    assert result.normalized == 0
    assert [e.stage for e in result.errors] == [service.STAGE_NORMALIZE]
    row = store.rows[(ItemType.CARD, card.item_id)]
    assert row.raw_score > 1.0
    assert row.norm_score == 0.25
