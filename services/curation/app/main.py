import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.database import dispose_db, init_db
from app.dependencies import get_settings
from app.feed.router import router as feed_router
from app.ranking.router import router as ranking_router
from app.rate_limit import limiter
from shared.middleware.error_handler import error_envelope_middleware
from shared.middleware.request_id import RequestIdLogFilter, request_id_middleware

logger = logging.getLogger(__name__)

# Swagger tag groups displayed in the OpenAPI docs sidebar
_OPENAPI_TAGS = [
    {
        "name": "Feed",
        "description": (
            "Public explore feed. Mixes ranked cards and collections (stacks) by "
            "normalized score, collapses duplicate card URLs, and falls back to "
            "recency when no ranking data exists."
        ),
    },
    {
        "name": "Ranking",
        "description": (
            "Internal ranking pipeline: recompute raw and normalized scores, inspect "
            "the top of the store, per-type stats, and per-item score breakdowns. "
            "Requires `Authorization: Bearer <WORKER_API_KEY>`."
        ),
    },
    {
        "name": "Health",
        "description": "Liveness probe.",
    },
]

_LOG_FORMAT = "%(levelname)s:%(name)s:[%(request_id)s] %(message)s"


def _configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdLogFilter) for f in handler.filters):
            handler.addFilter(RequestIdLogFilter())


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    _configure_logging(settings.log_level)
    init_db(settings.curation_database_url)
    redis_client = aioredis.from_url(
        settings.redis_url, encoding="utf-8", decode_responses=True
    )
    app.state.redis = redis_client
    # Validated once: a bad CARD_WEIGHTS / COLLECTION_WEIGHTS fails startup
    app.state.weight_profiles = settings.weight_profiles()
    logger.info("Curation service started (env=%s)", settings.env_name)

    yield

    await redis_client.aclose()
    await dispose_db()


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="Stacq Curation Service",
        description=(
            "Ranking and feed assembly for cards and collections. A periodic job "
            "scores every eligible item and normalizes scores per type; the feed "
            "endpoint blends both types into one page at request time."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=_OPENAPI_TAGS,
        lifespan=lifespan,
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Last added = outermost; CORS outermost so 429s carry CORS headers too.
    app.add_middleware(SlowAPIMiddleware)
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(error_envelope_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )

    app.include_router(feed_router, prefix="/api/v1")
    app.include_router(ranking_router, prefix="/api/v1")

    @app.get("/health", tags=["Health"])
    async def health() -> dict:
        """Lightweight liveness probe. Does not hit the database."""
        return {"status": "ok", "service": "curation"}

    return app


app = create_app()
