"""
Personal library: which papers a user has shelved, and with what status.

Library writes are what produce most feed events: adding a paper emits an
'added_to_library' post, moving it between shelves emits 'status_changed'.
"""
import logging
from typing import Optional

from shelffeed.feed.joiner import fetch_papers
from shelffeed.models import LibraryItem, Paper
from shelffeed.posts import create_post
from shelffeed.schemas import LibraryItemResponse, PaperUpsert
from shelffeed.store import UNIQUE_VIOLATION, DataStore, StoreError

logger = logging.getLogger(__name__)


async def upsert_paper(store: DataStore, paper_id: str, body: PaperUpsert) -> Paper:
    values = body.model_dump()
    updated = await store.update(Paper, values, Paper.paper_id == paper_id)
    if not updated:
        try:
            await store.insert(Paper(paper_id=paper_id, **values))
        except StoreError as exc:
            # Concurrent insert of the same paper; apply our values on top
            if exc.code != UNIQUE_VIOLATION:
                raise
            await store.update(Paper, values, Paper.paper_id == paper_id)
    return await store.select_one(Paper, Paper.paper_id == paper_id)


async def list_library(
    store: DataStore, user_id: str, status: Optional[str] = None
) -> list[LibraryItemResponse]:
    filters = [LibraryItem.user_id == user_id]
    if status is not None:
        filters.append(LibraryItem.status == status)
    items = await store.select(
        LibraryItem, *filters, order_by=[LibraryItem.inserted_at.desc()]
    )
    papers = await fetch_papers(store, [it.paper_id for it in items])
    return [
        LibraryItemResponse(
            paper_id=it.paper_id,
            status=it.status,
            inserted_at=it.inserted_at,
            paper=papers.get(it.paper_id),
        )
        for it in items
    ]


async def add_to_library(store: DataStore, user_id: str, paper_id: str, status: str) -> bool:
    """Shelve a paper. Returns False if it was already in the library."""
    try:
        await store.insert(LibraryItem(user_id=user_id, paper_id=paper_id, status=status))
    except StoreError as exc:
        if exc.code != UNIQUE_VIOLATION:
            raise
        return False
    await create_post(store, user_id, "added_to_library", paper_id=paper_id, status=status)
    return True


async def set_shelf_status(store: DataStore, user_id: str, paper_id: str, status: str) -> bool:
    """Move a shelved paper to another status. Returns False if it isn't shelved."""
    item = await store.select_one(
        LibraryItem, LibraryItem.user_id == user_id, LibraryItem.paper_id == paper_id
    )
    if item is None:
        return False
    if item.status == status:
        return True
    await store.update(
        LibraryItem,
        {"status": status},
        LibraryItem.user_id == user_id,
        LibraryItem.paper_id == paper_id,
    )
    await create_post(store, user_id, "status_changed", paper_id=paper_id, status=status)
    return True
