"""
Reference Data Joiner.

Feed rows carry foreign keys (paper ids, user ids). Instead of joining in the
query, the ids are collected, de-duplicated and resolved with one IN (...)
lookup per reference kind, returning key → record maps. Every requested key
is present in the returned map; keys with no row (or beyond the batch cap, or
lost to a failed fetch) map to None so callers render the item without that
reference.

Batch cap overflow: ids past settings.reference_batch_cap (counted after
de-duplication, in first-seen order) are dropped, logged, and counted in
reference_batch_truncated_total. They resolve to None like a missing row.
"""
import logging
from typing import Iterable, Optional

from shelffeed.config import settings
from shelffeed.models import Paper, Profile
from shelffeed.schemas import PaperRecord, ProfileSnapshot
from shelffeed.store import DataStore, StoreError
from shelffeed.telemetry import REFERENCE_TRUNCATED_TOTAL, SECTION_FAILURES_TOTAL

logger = logging.getLogger(__name__)


def unique_ids(ids: Iterable[Optional[str]]) -> list[str]:
    """Drop None/empty ids and duplicates, keeping first-seen order."""
    return list(dict.fromkeys(i for i in ids if i))


def cap_batch(ids: list[str], kind: str, cap: Optional[int] = None) -> list[str]:
    cap = settings.reference_batch_cap if cap is None else cap
    if len(ids) <= cap:
        return ids
    logger.warning(
        "Reference lookup for %s truncated: %d ids requested, cap is %d",
        kind,
        len(ids),
        cap,
    )
    REFERENCE_TRUNCATED_TOTAL.labels(kind=kind).inc()
    return ids[:cap]


async def fetch_papers(
    store: DataStore, paper_ids: Iterable[Optional[str]]
) -> dict[str, Optional[PaperRecord]]:
    ids = unique_ids(paper_ids)
    papers: dict[str, Optional[PaperRecord]] = dict.fromkeys(ids)
    batch = cap_batch(ids, "papers")
    if not batch:
        return papers
    try:
        rows = await store.select(Paper, Paper.paper_id.in_(batch))
    except StoreError as exc:
        logger.warning("Paper lookup failed (%d ids): %s — rendering without papers", len(batch), exc)
        SECTION_FAILURES_TOTAL.labels(section="papers").inc()
        return papers
    for row in rows:
        papers[row.paper_id] = PaperRecord.model_validate(row)
    return papers


async def fetch_profiles(
    store: DataStore, user_ids: Iterable[Optional[str]]
) -> dict[str, Optional[ProfileSnapshot]]:
    ids = unique_ids(user_ids)
    profiles: dict[str, Optional[ProfileSnapshot]] = dict.fromkeys(ids)
    batch = cap_batch(ids, "profiles")
    if not batch:
        return profiles
    try:
        rows = await store.select(Profile, Profile.user_id.in_(batch))
    except StoreError as exc:
        logger.warning("Profile lookup failed (%d ids): %s — rendering without profiles", len(batch), exc)
        SECTION_FAILURES_TOTAL.labels(section="profiles").inc()
        return profiles
    for row in rows:
        profiles[row.user_id] = ProfileSnapshot.model_validate(row)
    return profiles
