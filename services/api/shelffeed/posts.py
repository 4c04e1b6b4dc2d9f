"""
Post ingestion and likes.

Posts are immutable once written. Likes are toggled without a write lock:
two sessions toggling at once may leave duplicate rows for one (user, post),
and every reader goes through dedupe_likes so the feed is unaffected.
"""
import logging
from typing import Optional

from shelffeed.config import settings
from shelffeed.feed.dedup import dedupe_likes
from shelffeed.feed.joiner import fetch_papers
from shelffeed.models import Post, PostLike
from shelffeed.schemas import LikeState, PostResponse
from shelffeed.store import DataStore

logger = logging.getLogger(__name__)


async def create_post(
    store: DataStore,
    user_id: str,
    kind: str,
    paper_id: Optional[str] = None,
    status: Optional[str] = None,
    target_user_id: Optional[str] = None,
) -> Post:
    post = Post(
        user_id=user_id,
        kind=kind,
        paper_id=paper_id,
        status=status,
        target_user_id=target_user_id,
    )
    await store.insert(post)
    logger.info("Post created: %s (%s) by user %s", post.post_id, kind, user_id)
    return post


async def get_post(store: DataStore, post_id: str) -> Optional[Post]:
    return await store.select_one(Post, Post.post_id == post_id)


async def list_user_posts(store: DataStore, user_id: str) -> list[PostResponse]:
    """The user's own posts, newest first, with papers resolved."""
    posts = await store.select(
        Post,
        Post.user_id == user_id,
        order_by=[Post.created_at.desc()],
        limit=settings.user_posts_cap,
    )
    papers = await fetch_papers(store, [p.paper_id for p in posts])
    return [
        PostResponse(
            post_id=p.post_id,
            user_id=p.user_id,
            kind=p.kind,
            paper_id=p.paper_id,
            status=p.status,
            target_user_id=p.target_user_id,
            paper=papers.get(p.paper_id) if p.paper_id else None,
            created_at=p.created_at,
        )
        for p in posts
    ]


async def like_state(store: DataStore, user_id: str, post_id: str) -> LikeState:
    likes = dedupe_likes(await store.select(PostLike, PostLike.post_id == post_id))
    return LikeState(
        post_id=post_id,
        liked=any(like.user_id == user_id for like in likes),
        like_count=len(likes),
    )


async def toggle_like(store: DataStore, user_id: str, post_id: str) -> LikeState:
    """Flip the user's like on a post and return the resulting state."""
    current = await like_state(store, user_id, post_id)
    if current.liked:
        # Clears every duplicate row for the pair, not just the newest
        await store.delete(PostLike, PostLike.user_id == user_id, PostLike.post_id == post_id)
    else:
        await store.insert(PostLike(user_id=user_id, post_id=post_id))
    return await like_state(store, user_id, post_id)
