"""
Timeline ordering shared by every feed.

Newest first. Items with the same timestamp are ordered by (kind, actor id,
item id) ascending, so the result does not depend on the order the sources
were fetched or merged in.
"""
from typing import Callable, Iterable, TypeVar

from shelffeed.schemas import ActivityItem, FeedItem

T = TypeVar("T", FeedItem, ActivityItem)


def feed_tiebreak(item: FeedItem) -> tuple:
    return (item.kind, item.user_id, item.post_id)


def activity_tiebreak(item: ActivityItem) -> tuple:
    return (item.kind, item.actor_id, item.post_id or "")


def sort_timeline(items: Iterable[T], tiebreak: Callable[[T], tuple]) -> list[T]:
    # Two stable passes: secondary key first, then timestamp descending
    ordered = sorted(items, key=tiebreak)
    ordered.sort(key=lambda item: item.created_at, reverse=True)
    return ordered
