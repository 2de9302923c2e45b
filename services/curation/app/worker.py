"""
ARQ worker: periodic ranking recomputation.

Runs as a SEPARATE process from the FastAPI API server.

Start:  arq app.worker.WorkerSettings

The cron job re-scores every eligible card and collection every
RANKING_INTERVAL_MINUTES and renormalizes. Scoring is idempotent, so a run
that overlaps a manual POST /ranking/recompute is harmless.
"""
from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

from arq import cron
from arq.connections import RedisSettings

from app.config import Settings
from app.database import dispose_db, get_session_factory, init_db
from app.models.enums import ItemType
from app.ranking import service
from app.ranking.inputs import ScoreInputsProvider
from app.ranking.store import RankingStore
from shared.database.postgres import session_scope

logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s: %(message)s")
logger = logging.getLogger("curation.worker")


async def startup(ctx: dict[str, Any]) -> None:
    settings = Settings()
    ctx["settings"] = settings
    ctx["weight_profiles"] = settings.weight_profiles()
    init_db(settings.curation_database_url)
    logger.info("Worker started, DB pool initialized")


async def shutdown(ctx: dict[str, Any]) -> None:
    logger.info("Worker shutting down")
    await dispose_db()


async def recompute_rankings(
    ctx: dict[str, Any],
    item_type: str | None = None,
    changed_since_days: int | None = None,
    dry_run: bool = False,
) -> dict[str, Any]:
    """Run one recompute in its own unit of work and return the summary."""
    settings: Settings = ctx["settings"]
    async with session_scope(get_session_factory()) as session:
        result = await service.recompute(
            RankingStore(session),
            ScoreInputsProvider(session),
            ctx["weight_profiles"],
            item_type=ItemType.from_external(item_type) if item_type else None,
            changed_since_days=changed_since_days,
            dry_run=dry_run,
            snapshot_limit=settings.ranking_snapshot_limit,
        )
    if result.errors:
        logger.warning("Recompute finished with %d item errors", len(result.errors))
    return result.as_dict()


async def scheduled_recompute(ctx: dict[str, Any]) -> dict[str, Any]:
    return await recompute_rankings(ctx)


def _redis_settings() -> RedisSettings:
    parsed = urlparse(Settings().redis_url)
    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        database=int(parsed.path.lstrip("/") or 0),
        password=parsed.password,
    )


def _cron_minutes() -> set[int]:
    return set(range(0, 60, Settings().ranking_interval_minutes))


class WorkerSettings:
    """ARQ reads this class to configure the worker process."""
    functions = [recompute_rankings]
    cron_jobs = [cron(scheduled_recompute, minute=_cron_minutes(), run_at_startup=True)]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = _redis_settings()
    # One recompute at a time per process
    max_jobs = 1
    max_tries = 3
    job_timeout = 1800
    keep_result = 3600
    queue_name = "curation:tasks"
