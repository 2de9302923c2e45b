#!/usr/bin/env python3
"""
Run one ranking recompute outside the API and the arq worker.

Reads CURATION_DATABASE_URL (and optional CARD_WEIGHTS / COLLECTION_WEIGHTS)
from .env.

Usage:
    python scripts/recompute_rankings.py                    # everything
    python scripts/recompute_rankings.py --type stack --days 7
    python scripts/recompute_rankings.py --dry-run
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add backend root to path so imports resolve
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "services" / "curation"))
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "shared"))

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from app.config import Settings  # noqa: E402
from app.database import dispose_db, get_session_factory, init_db  # noqa: E402
from app.models.enums import ItemType  # noqa: E402
from app.ranking import service  # noqa: E402
from app.ranking.inputs import ScoreInputsProvider  # noqa: E402
from app.ranking.store import RankingStore  # noqa: E402
from shared.database.postgres import session_scope  # noqa: E402


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Recompute explore ranking scores.")
    parser.add_argument("--type", dest="item_type", help="card or collection (stack)")
    parser.add_argument(
        "--days", type=int, default=None, help="only items updated in the last N days"
    )
    parser.add_argument("--dry-run", action="store_true", help="compute without writing")
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = Settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)s:%(name)s: %(message)s")

    try:
        item_type = ItemType.from_external(args.item_type) if args.item_type else None
    except ValueError as exc:
        print(f"Error: {exc}")
        return 2

    init_db(settings.curation_database_url)
    try:
        async with session_scope(get_session_factory()) as session:
            result = await service.recompute(
                RankingStore(session),
                ScoreInputsProvider(session),
                settings.weight_profiles(),
                item_type=item_type,
                changed_since_days=args.days,
                dry_run=args.dry_run,
                snapshot_limit=settings.ranking_snapshot_limit,
            )
    finally:
        await dispose_db()

    print(json.dumps(result.as_dict(), indent=2))
    return 1 if result.errors else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
