import pytest
from pydantic import ValidationError

from app import worker
from app.config import Settings
from app.models.enums import ItemType
from conftest import card_source, collection_source


class FakeSession:
    def __init__(self) -> None:
        self.committed = False
        self.rolled_back = False

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc) -> None:
        return None

    async def commit(self) -> None:
        self.committed = True

    async def rollback(self) -> None:
        self.rolled_back = True


@pytest.fixture
def job_ctx(monkeypatch, settings, ranking_store, score_inputs):
    session = FakeSession()
    monkeypatch.setattr(worker, "get_session_factory", lambda: lambda: session)
    monkeypatch.setattr(worker, "RankingStore", lambda db: ranking_store)
    monkeypatch.setattr(worker, "ScoreInputsProvider", lambda db: score_inputs)
    ctx = {"settings": settings, "weight_profiles": settings.weight_profiles()}
    return ctx, session


@pytest.mark.asyncio
async def test_recompute_job_commits_and_returns_summary(job_ctx, score_inputs, ranking_store) -> None:
    ctx, session = job_ctx
    score_inputs.sources.extend([card_source(), collection_source()])

    summary = await worker.recompute_rankings(ctx)

    assert session.committed is True
    assert summary["succeeded"] == 2
    assert summary["errors"] == []
    assert len(ranking_store.rows) == 2


@pytest.mark.asyncio
async def test_recompute_job_accepts_type_alias(job_ctx, score_inputs, ranking_store) -> None:
    ctx, _ = job_ctx
    score_inputs.sources.extend([card_source(), collection_source()])

    summary = await worker.recompute_rankings(ctx, item_type="stacks")

    assert summary["cards_processed"] == 0
    assert {k[0] for k in ranking_store.rows} == {ItemType.COLLECTION}


def test_cron_minutes_follow_interval(monkeypatch) -> None:
    monkeypatch.setenv("RANKING_INTERVAL_MINUTES", "20")
    assert worker._cron_minutes() == {0, 20, 40}


def test_interval_must_divide_the_hour() -> None:
    with pytest.raises(ValidationError):
        Settings(ranking_interval_minutes=7)


def test_weight_overrides_from_settings() -> None:
    profiles = Settings(card_weights={"w_saves": 5}).weight_profiles()
    assert profiles[ItemType.CARD].w_saves == 5.0
    assert profiles[ItemType.COLLECTION].w_saves == 3.0
    with pytest.raises(ValueError):
        Settings(collection_weights={"w_bogus": 1}).weight_profiles()
