"""
Last-request-wins for feed reads.

A viewer who re-triggers a feed before the previous request resolved only
wants the newest answer. Every request takes a generation number on entry;
when the work is done the result is only released if no newer request from
the same viewer has started since. Older results raise SupersededError and
are never merged with the newer one.

Generations live in Redis so the rule holds across API replicas. While Redis
is unreachable requests run untracked and every result is released.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from redis.exceptions import RedisError

from shelffeed.clients import redis_client
from shelffeed.telemetry import SUPERSEDED_TOTAL

logger = logging.getLogger(__name__)


class SupersededError(Exception):
    def __init__(self, feed: str, user_id: str, generation: int, latest: int) -> None:
        super().__init__(
            f"{feed} request {generation} for {user_id} superseded by {latest}"
        )
        self.feed = feed
        self.user_id = user_id
        self.generation = generation
        self.latest = latest


class RequestTicket:
    def __init__(self, feed: str, user_id: str, generation: int) -> None:
        self.feed = feed
        self.user_id = user_id
        self.generation = generation

    async def ensure_latest(self) -> None:
        if self.generation == 0:
            return
        try:
            latest = await redis_client.current_generation(self.feed, self.user_id)
        except RedisError as exc:
            logger.warning("Generation check failed for %s: %s; releasing result", self.user_id, exc)
            return
        if latest > self.generation:
            SUPERSEDED_TOTAL.labels(feed=self.feed).inc()
            raise SupersededError(self.feed, self.user_id, self.generation, latest)


@asynccontextmanager
async def latest_request(feed: str, user_id: str) -> AsyncIterator[RequestTicket]:
    """
    Usage:
        async with latest_request("following", viewer_id) as ticket:
            items = await assemble_feed(...)
            await ticket.ensure_latest()
    """
    try:
        generation = await redis_client.next_generation(feed, user_id)
    except (RedisError, RuntimeError) as exc:
        logger.warning("Generation tracking unavailable for %s: %s", user_id, exc)
        generation = 0  # untracked
    yield RequestTicket(feed, user_id, generation)
