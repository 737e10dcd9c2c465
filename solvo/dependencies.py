"""FastAPI dependency providers for the submission endpoints."""
from functools import lru_cache
from typing import Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from services.scoring_engine.idempotency import Clock, IdempotencyGuard, utc_now
from services.scoring_engine.models import Authenticator
from services.scoring_engine.rate_limit import AllowAllRateLimiter, RateLimiter
from solvo.auth.jwt import JWTAuthenticator
from solvo.config import Settings, get_settings
from solvo.db.session import db_session
from solvo.middleware.rate_limit import RedisRateLimiter
from solvo.services.storage import SqlSubmissionStore

# auto_error=False means it returns None if no header, instead of raising HTTPException
bearer_scheme = HTTPBearer(auto_error=False, description="JWT access token.")

# Keyed by the serialized auth settings, so the verification key is loaded once per config
_authenticators: Dict[str, JWTAuthenticator] = {}


async def get_access_token(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Optional[str]:
    """Bearer header first, then the session cookie."""
    credentials: Optional[HTTPAuthorizationCredentials] = await bearer_scheme(request)
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.auth.cookie_name)


def get_authenticator(settings: Settings = Depends(get_settings)) -> Authenticator:
    key = settings.auth.model_dump_json()
    authenticator = _authenticators.get(key)
    if authenticator is None:
        authenticator = _authenticators[key] = JWTAuthenticator(settings.auth)
    return authenticator


def get_rate_limiter(settings: Settings = Depends(get_settings)) -> RateLimiter:
    if settings.submission.rate_limit_enabled:
        return RedisRateLimiter(settings.submission)
    return AllowAllRateLimiter()


def get_clock() -> Clock:
    return utc_now


@lru_cache(maxsize=None)
def _shared_guard(window_seconds: int, clock: Clock) -> IdempotencyGuard:
    return IdempotencyGuard(window_seconds=window_seconds, clock=clock)


def get_idempotency_guard(
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
) -> IdempotencyGuard:
    """Process-wide guard, so degraded_checks counts across requests."""
    return _shared_guard(settings.submission.idempotency_window_seconds, clock)


def get_submission_store(session: AsyncSession = Depends(db_session)) -> SqlSubmissionStore:
    return SqlSubmissionStore(session)
