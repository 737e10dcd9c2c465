"""Rate limiting port used by the submission pipeline."""
from dataclasses import dataclass
from typing import Optional, Protocol

from .models import Principal


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: Optional[int] = None
    remaining: Optional[int] = None
    retry_after: Optional[int] = None


class RateLimiter(Protocol):
    async def check(self, principal: Principal) -> RateLimitDecision: ...


class AllowAllRateLimiter:
    """Default limiter: every submission is allowed."""

    async def check(self, principal: Principal) -> RateLimitDecision:
        return RateLimitDecision(allowed=True)
