"""
Idempotency Guard.

Detects a prior submission from the same subject inside a short lookback
window. A failing lookup is treated as "not a duplicate" (fail open): losing
duplicate protection for one request is preferable to blocking every
submission while the store is degraded. The degraded path is logged and
counted so it stays visible to operators.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .models import StoreError, SubmissionStore

logger = logging.getLogger(__name__)

IDEMPOTENCY_WINDOW_SECONDS = 60

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # Some drivers (sqlite) hand back naive datetimes; stored values are UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class IdempotencyVerdict:
    is_duplicate: bool
    age_seconds: Optional[int] = None
    retry_after: Optional[int] = None
    degraded: bool = False


class IdempotencyGuard:
    def __init__(self, window_seconds: int = IDEMPOTENCY_WINDOW_SECONDS, clock: Clock = utc_now):
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.window_seconds = window_seconds
        self.clock = clock
        self.degraded_checks = 0

    async def check(self, store: SubmissionStore, table: str, user_id: str) -> IdempotencyVerdict:
        now = as_utc(self.clock())
        window_start = now - timedelta(seconds=self.window_seconds)
        try:
            latest = await store.latest_submission_since(table, user_id, window_start)
        except StoreError as e:
            self.degraded_checks += 1
            logger.warning(
                "idempotency.check_failed",
                extra={"table": table, "user_id": user_id, "error": str(e), "degraded_checks": self.degraded_checks},
            )
            return IdempotencyVerdict(is_duplicate=False, degraded=True)

        if latest is None:
            return IdempotencyVerdict(is_duplicate=False)

        elapsed = (now - as_utc(latest)).total_seconds()
        if elapsed >= self.window_seconds:
            # The store filter is inclusive of the boundary; the window itself is not
            return IdempotencyVerdict(is_duplicate=False)
        age = max(0, math.floor(elapsed))
        return IdempotencyVerdict(is_duplicate=True, age_seconds=age, retry_after=self.window_seconds - age)
