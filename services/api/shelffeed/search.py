"""
Fuzzy user search.

A query matches a name when it is a case-insensitive substring of it, or
failing that, when its characters appear in the name in order (fuzzy-finder
style: "jsmith" matches "Jonathan Smith"). The empty query matches everyone.

Search runs over the whole profile directory, not just the viewer's follow
set, so it can discover people outside the viewer's graph.
"""
import logging
from typing import Optional

from shelffeed.config import settings
from shelffeed.models import Profile
from shelffeed.schemas import ProfileSnapshot
from shelffeed.store import DataStore, StoreError
from shelffeed.telemetry import SECTION_FAILURES_TOTAL

logger = logging.getLogger(__name__)


def fuzzy_match(name: str, query: str) -> bool:
    name = name.lower()
    query = query.lower()
    if query in name:
        return True
    chars = iter(name)
    # `in` on an iterator consumes it up to the match, so order is enforced
    return all(c in chars for c in query)


def searchable_name(profile: ProfileSnapshot) -> str:
    return profile.display_name or profile.username or ""


def matches(profile: ProfileSnapshot, query: str) -> bool:
    return fuzzy_match(searchable_name(profile), query)


async def load_directory(store: DataStore) -> dict[str, ProfileSnapshot]:
    """Every profile, keyed by user id. Degrades to {} when the store fails."""
    try:
        rows = await store.select(Profile)
    except StoreError as exc:
        logger.warning("Profile directory fetch failed: %s — search disabled for this request", exc)
        SECTION_FAILURES_TOTAL.labels(section="directory").inc()
        return {}
    return {row.user_id: ProfileSnapshot.model_validate(row) for row in rows}


def matching_user_ids(directory: dict[str, ProfileSnapshot], query: str) -> set[str]:
    return {uid for uid, profile in directory.items() if matches(profile, query)}


async def search_profiles(
    store: DataStore, query: str, limit: Optional[int] = None
) -> list[ProfileSnapshot]:
    limit = settings.search_result_cap if limit is None else limit
    directory = await load_directory(store)
    found = [p for p in directory.values() if matches(p, query.strip())]
    found.sort(key=lambda p: (p.username or "", p.user_id))
    return found[:limit]
