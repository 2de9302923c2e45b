import hmac
from collections.abc import Mapping

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.asyncio import Redis

from app.config import Settings
from app.exceptions import UnauthorizedError
from app.models.enums import ItemType
from app.ranking.scoring import WeightProfile

_bearer = HTTPBearer(auto_error=False)


def get_settings() -> Settings:
    return Settings()


async def get_redis(request: Request) -> Redis:
    return request.app.state.redis


def get_weight_profiles(request: Request) -> Mapping[ItemType, WeightProfile]:
    """Profiles loaded once in the app lifespan."""
    return request.app.state.weight_profiles


async def require_worker_key(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    settings: Settings = Depends(get_settings),
) -> None:
    """Gate internal endpoints behind ``Authorization: Bearer <WORKER_API_KEY>``."""
    if not settings.worker_api_key:
        return
    if credentials is None or not hmac.compare_digest(
        credentials.credentials.encode(), settings.worker_api_key.encode()
    ):
        raise UnauthorizedError()
