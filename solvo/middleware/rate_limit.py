import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

import redis.asyncio as redis
from redis.exceptions import NoScriptError, RedisError

from services.scoring_engine.models import Principal
from services.scoring_engine.rate_limit import RateLimitDecision
from solvo.auth.schemas import get_tier_level
from solvo.cache.connection import NAMESPACE, get_redis
from solvo.config import SubmissionSettings

logger = logging.getLogger(__name__)

WINDOW_SIZE_SECONDS = 60 # Per minute window
PREMIUM_TIER_LEVEL = 20

# Lua script for atomic window increment
LUA_SCRIPT = """
local key = KEYS[1]
local expiry = tonumber(ARGV[1])
local count = redis.call("INCR", key)
if count == 1 then
    redis.call("EXPIRE", key, expiry)
end
return count
"""
_lua_sha: Optional[str] = None
_lua_sha_lock = asyncio.Lock()

async def get_lua_sha(redis_conn: redis.Redis) -> Optional[str]:
    """Loads the Lua script into Redis and returns its SHA."""
    global _lua_sha
    async with _lua_sha_lock:
        if _lua_sha is None:
            try:
                _lua_sha = await redis_conn.script_load(LUA_SCRIPT)
                logger.info(f"Loaded rate limiting Lua script with SHA: {_lua_sha}")
            except RedisError as e:
                logger.error(f"Failed to load Lua script into Redis: {e}")
                _lua_sha = None
        return _lua_sha


async def forget_lua_sha() -> None:
    """Drops the cached SHA after Redis lost its script cache (restart or SCRIPT FLUSH)."""
    global _lua_sha
    async with _lua_sha_lock:
        _lua_sha = None


class RedisRateLimiter:
    """
    Fixed one-minute window counter per subject, backed by Redis.

    Keys look like ``solvo:rl:<subject>:<epoch minute>``. The limit depends on
    the subject's tier. Any Redis failure allows the submission through.
    """

    def __init__(
        self,
        settings: SubmissionSettings,
        connection_factory: Callable[[], Awaitable[Optional[redis.Redis]]] = get_redis,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.connection_factory = connection_factory
        self.clock = clock

    def limit_for(self, principal: Principal) -> int:
        if get_tier_level(principal.tier) >= PREMIUM_TIER_LEVEL:
            return self.settings.premium_rate_limit_per_minute
        return self.settings.rate_limit_per_minute

    async def check(self, principal: Principal) -> RateLimitDecision:
        limit = self.limit_for(principal)

        redis_conn = await self.connection_factory()
        if not redis_conn:
            logger.warning("Redis unavailable, skipping rate limiting.")
            return RateLimitDecision(allowed=True, limit=limit)

        now = self.clock()
        current_minute_epoch = int(now // WINDOW_SIZE_SECONDS)
        key = f"{NAMESPACE}rl:{principal.id}:{current_minute_epoch}"
        expiry_seconds = WINDOW_SIZE_SECONDS * 2 # Expire slightly longer

        try:
            sha = await get_lua_sha(redis_conn)
            if sha:
                try:
                    current_count = await redis_conn.evalsha(sha, 1, key, str(expiry_seconds))
                except NoScriptError:
                    logger.warning("Lua script missing from Redis, reloading on next check and using EVAL.")
                    await forget_lua_sha()
                    current_count = await redis_conn.eval(LUA_SCRIPT, 1, key, str(expiry_seconds))
            else:
                logger.warning("Lua script SHA not available, using EVAL.")
                current_count = await redis_conn.eval(LUA_SCRIPT, 1, key, str(expiry_seconds))
            current_count = int(current_count)
        except RedisError as e:
            logger.error(f"Redis error during rate limiting for user {principal.id}: {e}. Allowing request.")
            return RateLimitDecision(allowed=True, limit=limit)

        remaining = max(0, limit - current_count)
        if current_count > limit:
            # Seconds until the current window rolls over
            retry_after = max(1, int((current_minute_epoch + 1) * WINDOW_SIZE_SECONDS - now))
            logger.warning(f"Rate limit exceeded for user {principal.id} (tier: {principal.tier}). Count: {current_count}, Limit: {limit}")
            return RateLimitDecision(allowed=False, limit=limit, remaining=0, retry_after=retry_after)

        logger.debug(f"Rate limit check passed for user {principal.id}. Count: {current_count}, Remaining: {remaining}")
        return RateLimitDecision(allowed=True, limit=limit, remaining=remaining)
