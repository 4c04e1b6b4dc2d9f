"""
Profile reads and writes.

Usernames are unique, lowercase, 3–20 chars of [a-z0-9_.]. Lookups by
username are case-insensitive. A missing profile is None, never an error.
"""
import asyncio
import logging
import re
from typing import Optional

from sqlalchemy import func

from shelffeed.models import Follow, LibraryItem, Post, PostLike, Profile
from shelffeed.schemas import USERNAME_PATTERN, ProfileStats, ProfileUpdate
from shelffeed.social_graph import follow_counts
from shelffeed.store import UNIQUE_VIOLATION, DataStore, StoreError

logger = logging.getLogger(__name__)

_USERNAME_RE = re.compile(USERNAME_PATTERN)


class InvalidUsernameError(ValueError):
    pass


class UsernameTakenError(ValueError):
    pass


def validate_username(username: str) -> str:
    normalized = username.strip().lower()
    if not _USERNAME_RE.match(normalized):
        raise InvalidUsernameError(
            "Username must be 3-20 characters of lowercase letters, digits, '_' or '.'"
        )
    return normalized


async def get_profile(store: DataStore, user_id: str) -> Optional[Profile]:
    return await store.select_one(Profile, Profile.user_id == user_id)


async def get_profile_by_username(store: DataStore, username: str) -> Optional[Profile]:
    return await store.select_one(Profile, func.lower(Profile.username) == username.strip().lower())


async def ensure_profile(store: DataStore, user_id: str) -> Profile:
    """Return the user's profile, creating an empty one on first sign-in."""
    profile = await get_profile(store, user_id)
    if profile is not None:
        return profile
    try:
        await store.insert(Profile(user_id=user_id))
    except StoreError as exc:
        # Another session created it first
        if exc.code != UNIQUE_VIOLATION:
            raise
    else:
        await store.insert(Post(user_id=user_id, kind="user_joined"))
        logger.info("Created profile for %s", user_id)
    return await get_profile(store, user_id)


async def update_profile(store: DataStore, user_id: str, body: ProfileUpdate) -> Profile:
    await ensure_profile(store, user_id)
    values = body.model_dump(exclude_unset=True)
    if values.get("username"):
        values["username"] = validate_username(values["username"])
        owner = await get_profile_by_username(store, values["username"])
        if owner is not None and owner.user_id != user_id:
            raise UsernameTakenError(f"Username '{values['username']}' already taken")
    if values:
        try:
            await store.update(Profile, values, Profile.user_id == user_id)
        except StoreError as exc:
            if exc.code == UNIQUE_VIOLATION:
                raise UsernameTakenError(f"Username '{values.get('username')}' already taken") from exc
            raise
    return await get_profile(store, user_id)


async def profile_stats(store: DataStore, user_id: str) -> ProfileStats:
    counts, library_count, posts_count = await asyncio.gather(
        follow_counts(store, user_id),
        store.count(LibraryItem, LibraryItem.user_id == user_id),
        store.count(Post, Post.user_id == user_id),
    )
    return ProfileStats(
        followers=counts.followers,
        following=counts.following,
        library_count=library_count,
        posts_count=posts_count,
    )


async def delete_account_data(store: DataStore, user_id: str) -> None:
    """
    Remove everything the user owns: posts, library, likes they gave, the
    edges where they are the follower, and the profile. Edges pointing at the
    user from other accounts stay; readers render the missing profile as absent.
    """
    await store.delete_many(
        [
            (Post, Post.user_id == user_id),
            (LibraryItem, LibraryItem.user_id == user_id),
            (PostLike, PostLike.user_id == user_id),
            (Follow, Follow.follower_id == user_id),
            (Profile, Profile.user_id == user_id),
        ]
    )
    logger.info("Deleted account data for %s", user_id)
