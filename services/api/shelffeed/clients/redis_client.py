"""
Redis client wrapper.

Responsibilities:
  • Feed request generations — STRING counter keyed by gen:{feed}:{user_id}
                               INCR on every feed request; a request whose
                               generation is no longer the latest is stale.

Nothing feed-shaped is cached here: feeds are always computed on read.
"""
import logging
from typing import Optional

import redis.asyncio as aioredis

from shelffeed.config import settings

logger = logging.getLogger(__name__)

_redis: Optional[aioredis.Redis] = None


async def init_redis() -> None:
    global _redis
    client = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        decode_responses=True,
    )
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        raise
    _redis = client
    logger.info("Redis connected at %s:%s", settings.redis_host, settings.redis_port)


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    if _redis is None:
        raise RuntimeError("Redis not initialised — call init_redis() at startup")
    return _redis


# ─────────────────────── Feed Request Generations ─────────────────────────

def generation_key(feed: str, user_id: str) -> str:
    return f"gen:{feed}:{user_id}"


async def next_generation(feed: str, user_id: str) -> int:
    """Register a new request and return its generation number."""
    r = get_redis()
    key = generation_key(feed, user_id)
    generation = await r.incr(key)
    await r.expire(key, settings.redis_generation_ttl)
    return int(generation)


async def current_generation(feed: str, user_id: str) -> int:
    r = get_redis()
    raw = await r.get(generation_key(feed, user_id))
    return int(raw) if raw else 0
