"""
Library & paper endpoints:
  GET   /library?status=        — the viewer's shelved papers, newest first
  POST  /library                — shelve a paper (emits 'added_to_library')
  PATCH /library/{paper_id}     — change shelf status (emits 'status_changed')
  PUT   /papers/{paper_id}      — create or refresh a paper reference row
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from shelffeed import library
from shelffeed.auth import Session, require_session
from shelffeed.database import get_store
from shelffeed.schemas import (
    LibraryAdd,
    LibraryItemResponse,
    PaperRecord,
    PaperUpsert,
    ShelfStatus,
    StatusUpdate,
)
from shelffeed.store import DataStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/library", response_model=list[LibraryItemResponse])
async def list_library(
    status_filter: Optional[ShelfStatus] = Query(None, alias="status"),
    session: Session = Depends(require_session),
    store: DataStore = Depends(get_store),
):
    return await library.list_library(store, session.user_id, status_filter)


@router.post("/library", status_code=status.HTTP_201_CREATED)
async def add_to_library(
    body: LibraryAdd,
    response: Response,
    session: Session = Depends(require_session),
    store: DataStore = Depends(get_store),
):
    created = await library.add_to_library(store, session.user_id, body.paper_id, body.status)
    if not created:
        response.status_code = status.HTTP_200_OK
    return {"paper_id": body.paper_id, "created": created}


@router.patch("/library/{paper_id}", status_code=status.HTTP_204_NO_CONTENT)
async def set_shelf_status(
    paper_id: str,
    body: StatusUpdate,
    session: Session = Depends(require_session),
    store: DataStore = Depends(get_store),
):
    if not await library.set_shelf_status(store, session.user_id, paper_id, body.status):
        raise HTTPException(status_code=404, detail="Paper not in library")


@router.put("/papers/{paper_id}", response_model=PaperRecord)
async def upsert_paper(
    paper_id: str,
    body: PaperUpsert,
    session: Session = Depends(require_session),
    store: DataStore = Depends(get_store),
):
    return await library.upsert_paper(store, paper_id, body)
