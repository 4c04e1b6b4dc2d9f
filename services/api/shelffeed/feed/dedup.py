"""
Like-event deduplication.

Toggle races can leave several post_likes rows for the same (user, post).
Only the newest row per pair counts: it is the one surfaced in activity
timelines and the one like counts are built from.
"""
from datetime import datetime
from typing import Iterable, NamedTuple, Protocol, TypeVar


class LikeKey(NamedTuple):
    actor_id: str
    post_id: str


class LikeRecord(Protocol):
    user_id: str
    post_id: str
    created_at: datetime


L = TypeVar("L", bound=LikeRecord)


def like_key(like: LikeRecord) -> LikeKey:
    return LikeKey(like.user_id, like.post_id)


def dedupe_likes(likes: Iterable[L]) -> list[L]:
    """
    Keep exactly one like per (actor, post): the one with the latest
    created_at. Output is newest first.

    Rows sharing the winning timestamp resolve to the one that appears first
    in the input (sorted() is stable).
    """
    ordered = sorted(likes, key=lambda like: like.created_at, reverse=True)
    seen: set[LikeKey] = set()
    unique: list[L] = []
    for like in ordered:
        key = like_key(like)
        if key in seen:
            continue
        seen.add(key)
        unique.append(like)
    return unique
