import asyncio
import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from solvo.config import get_settings

_log = logging.getLogger(__name__)

NAMESPACE = "solvo:"


class RedisHandle:
    """
    Lazily created, process-wide Redis client.

    Concurrent first callers share one creation attempt. A failed attempt is
    not cached, so the next caller tries again; callers treat None as
    "Redis unavailable" and carry on without it.
    """

    def __init__(self, url: Optional[str] = None):
        self._url = url
        self._client: Optional[aioredis.Redis] = None
        self._pending: Optional[asyncio.Task] = None

    @property
    def url(self) -> str:
        return self._url or get_settings().redis.url

    async def _connect(self) -> Optional[aioredis.Redis]:
        url = self.url
        try:
            client = aioredis.from_url(
                url,
                decode_responses=False,
                socket_connect_timeout=1,
                socket_timeout=2,
            )
        except (RedisError, ValueError) as exc:
            _log.error(f"Failed to create Redis client for {url}, rate limiting disabled ({exc})")
            return None
        _log.info(f"Created Redis client for {url}")
        return client

    async def get(self) -> Optional[aioredis.Redis]:
        if self._client is not None:
            return self._client
        if self._pending is None:
            self._pending = asyncio.create_task(self._connect())
        try:
            self._client = await self._pending
        finally:
            self._pending = None
        return self._client

    async def close(self) -> None:
        pending, self._pending = self._pending, None
        if pending and not pending.done():
            pending.cancel()
            try:
                await pending
            except asyncio.CancelledError:
                _log.debug("Cancelled pending Redis connect")

        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.aclose()
            _log.info("Redis connection pool closed.")
        except RedisError as e:
            _log.warning(f"Error closing Redis connection: {e}")


_handle = RedisHandle()


async def get_redis() -> Optional[aioredis.Redis]:
    """Shared Redis client, or None when one cannot be created."""
    return await _handle.get()


async def close_redis() -> None:
    await _handle.close()
