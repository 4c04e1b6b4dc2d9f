"""
Feed retrieval endpoints:
  GET /feed      — posts from the viewer and the people they follow,
                   optionally filtered by a fuzzy author query (?q=)
  GET /activity  — likes on the viewer's posts and new followers

Both feeds are assembled on read (see shelffeed.feed.assembler) and guarded
by the last-request-wins gate: a request overtaken by a newer one from the
same viewer answers 409 instead of returning stale items.
"""
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from shelffeed.auth import Session, require_session
from shelffeed.database import get_store
from shelffeed.feed.assembler import assemble_activity, assemble_feed
from shelffeed.gate import SupersededError, latest_request
from shelffeed.schemas import ActivityResponse, FeedResponse
from shelffeed.store import DataStore
from shelffeed.telemetry import FEED_ITEMS_TOTAL, FEED_LATENCY

logger = logging.getLogger(__name__)
router = APIRouter()


def _superseded(exc: SupersededError) -> HTTPException:
    logger.info("Discarding stale result: %s", exc)
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="Superseded by a newer request",
    )


@router.get("/feed", response_model=FeedResponse)
async def get_feed(
    q: Optional[str] = Query(None, description="Fuzzy author name filter"),
    session: Session = Depends(require_session),
    store: DataStore = Depends(get_store),
):
    start_time = time.time()
    async with latest_request("following", session.user_id) as ticket:
        items = await assemble_feed(store, session.user_id, query=q)
        try:
            await ticket.ensure_latest()
        except SupersededError as exc:
            raise _superseded(exc) from exc

    latency = time.time() - start_time
    FEED_LATENCY.labels(feed="following").observe(latency)
    FEED_ITEMS_TOTAL.labels(feed="following").inc(len(items))
    return FeedResponse(
        user_id=session.user_id,
        items=items,
        empty=not items,
        query=q,
        latency_ms=round(latency * 1000, 2),
    )


@router.get("/activity", response_model=ActivityResponse)
async def get_activity(
    session: Session = Depends(require_session),
    store: DataStore = Depends(get_store),
):
    start_time = time.time()
    async with latest_request("activity", session.user_id) as ticket:
        items = await assemble_activity(store, session.user_id)
        try:
            await ticket.ensure_latest()
        except SupersededError as exc:
            raise _superseded(exc) from exc

    latency = time.time() - start_time
    FEED_LATENCY.labels(feed="activity").observe(latency)
    FEED_ITEMS_TOTAL.labels(feed="activity").inc(len(items))
    return ActivityResponse(
        user_id=session.user_id,
        items=items,
        empty=not items,
        latency_ms=round(latency * 1000, 2),
    )
