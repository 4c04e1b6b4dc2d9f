"""
Post endpoints:
  POST /posts                 — emit a post as the viewer
  GET  /posts/mine            — the viewer's own posts with papers
  POST /posts/{post_id}/like  — toggle the viewer's like
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace

from shelffeed import posts
from shelffeed.auth import Session, require_session
from shelffeed.database import get_store
from shelffeed.schemas import LikeState, PostCreate, PostResponse
from shelffeed.store import DataStore

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post("/", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    body: PostCreate,
    session: Session = Depends(require_session),
    store: DataStore = Depends(get_store),
):
    with tracer.start_as_current_span("create_post") as span:
        if body.kind == "followed" and not body.target_user_id:
            raise HTTPException(status_code=400, detail="'followed' posts need a target_user_id")
        post = await posts.create_post(
            store,
            session.user_id,
            body.kind,
            paper_id=body.paper_id,
            status=body.status,
            target_user_id=body.target_user_id,
        )
        span.set_attribute("post.id", post.post_id)
        return PostResponse(
            post_id=post.post_id,
            user_id=post.user_id,
            kind=post.kind,
            paper_id=post.paper_id,
            status=post.status,
            target_user_id=post.target_user_id,
            created_at=post.created_at,
        )


@router.get("/mine", response_model=list[PostResponse])
async def list_my_posts(
    session: Session = Depends(require_session),
    store: DataStore = Depends(get_store),
):
    return await posts.list_user_posts(store, session.user_id)


@router.post("/{post_id}/like", response_model=LikeState)
async def toggle_like(
    post_id: str,
    session: Session = Depends(require_session),
    store: DataStore = Depends(get_store),
):
    """Like the post if the viewer hasn't, otherwise remove the like."""
    with tracer.start_as_current_span("toggle_like"):
        if not await posts.get_post(store, post_id):
            raise HTTPException(status_code=404, detail="Post not found")
        return await posts.toggle_like(store, session.user_id, post_id)
