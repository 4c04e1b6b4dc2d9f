"""
Social graph accessor: follow edges between users.

  follow / unfollow      — idempotent edge writes
  is_following           — single edge probe
  follow_counts          — exact COUNT(*) both ways, never cached
  following_ids          — the follow set the Feed Assembler fans in from
  list_followers / list_following — edges joined with profiles

A user cannot follow themselves; follow() raises SelfFollowError before
touching the store.
"""
import logging
from typing import Optional

from shelffeed.feed.joiner import fetch_profiles
from shelffeed.models import Follow
from shelffeed.schemas import FollowCounts, FollowListEntry
from shelffeed.store import UNIQUE_VIOLATION, DataStore, StoreError
from shelffeed.telemetry import FOLLOW_EVENTS_TOTAL

logger = logging.getLogger(__name__)


class SelfFollowError(ValueError):
    pass


async def follow(store: DataStore, viewer_id: str, target_id: str) -> None:
    if viewer_id == target_id:
        raise SelfFollowError("Cannot follow yourself")
    try:
        await store.insert(Follow(follower_id=viewer_id, followee_id=target_id))
    except StoreError as exc:
        if exc.code != UNIQUE_VIOLATION:
            raise
        logger.debug("%s already follows %s", viewer_id, target_id)
        return
    FOLLOW_EVENTS_TOTAL.labels(action="follow").inc()
    logger.info("%s followed %s", viewer_id, target_id)


async def unfollow(store: DataStore, viewer_id: str, target_id: str) -> None:
    removed = await store.delete(
        Follow,
        Follow.follower_id == viewer_id,
        Follow.followee_id == target_id,
    )
    if removed:
        FOLLOW_EVENTS_TOTAL.labels(action="unfollow").inc()
        logger.info("%s unfollowed %s", viewer_id, target_id)


async def is_following(store: DataStore, viewer_id: Optional[str], target_id: str) -> bool:
    if not viewer_id:
        return False
    edge = await store.select_one(
        Follow.follower_id,
        Follow.follower_id == viewer_id,
        Follow.followee_id == target_id,
    )
    return edge is not None


async def follow_counts(store: DataStore, user_id: str) -> FollowCounts:
    followers = await store.count(Follow, Follow.followee_id == user_id)
    following = await store.count(Follow, Follow.follower_id == user_id)
    return FollowCounts(followers=followers, following=following)


async def following_ids(store: DataStore, user_id: str) -> list[str]:
    rows = await store.select((Follow.followee_id,), Follow.follower_id == user_id)
    return [row[0] for row in rows]


async def list_followers(store: DataStore, user_id: str) -> list[FollowListEntry]:
    """People following `user_id`, newest edge first."""
    edges = await store.select(
        Follow, Follow.followee_id == user_id, order_by=[Follow.created_at.desc()]
    )
    profiles = await fetch_profiles(store, [e.follower_id for e in edges])
    return [
        FollowListEntry(
            user_id=e.follower_id,
            profile=profiles.get(e.follower_id),
            followed_at=e.created_at,
        )
        for e in edges
    ]


async def list_following(store: DataStore, user_id: str) -> list[FollowListEntry]:
    """People `user_id` follows, newest edge first."""
    edges = await store.select(
        Follow, Follow.follower_id == user_id, order_by=[Follow.created_at.desc()]
    )
    profiles = await fetch_profiles(store, [e.followee_id for e in edges])
    return [
        FollowListEntry(
            user_id=e.followee_id,
            profile=profiles.get(e.followee_id),
            followed_at=e.created_at,
        )
        for e in edges
    ]
