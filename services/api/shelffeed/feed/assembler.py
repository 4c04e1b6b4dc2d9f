"""
Feed assembly — both timelines are computed on read.

Following feed (what the people I follow did):

  Stage 1 │ Visible authors
  ────────┼──────────────────────────────────────────────────────────────
          │  {users the viewer follows} ∪ {viewer}

  Stage 2 │ Candidate posts
  ────────┼──────────────────────────────────────────────────────────────
          │  Posts by the visible authors, newest first, capped at
          │  settings.feed_window.

  Stage 3 │ Reference join
  ────────┼──────────────────────────────────────────────────────────────
          │  Papers, author profiles and likes fetched concurrently;
          │  all three complete before any item is built.

  Stage 4 │ Filter & order
  ────────┼──────────────────────────────────────────────────────────────
          │  Optional fuzzy author filter over the full profile directory,
          │  then the shared timeline sort.

Activity feed (what happened to me): likes on the viewer's posts (deduplicated
per liker and post) merged with new followers, actors and liked papers
resolved, one timeline.

Each sub-fetch fails on its own: a failing section degrades to empty and the
rest of the feed still renders.
"""
import asyncio
import logging
from collections import Counter
from typing import Optional

from opentelemetry import trace

from shelffeed.config import settings
from shelffeed.feed.dedup import dedupe_likes
from shelffeed.feed.joiner import fetch_papers, fetch_profiles
from shelffeed.feed.timeline import activity_tiebreak, feed_tiebreak, sort_timeline
from shelffeed.models import Follow, Post, PostLike
from shelffeed.schemas import ActivityItem, FeedItem
from shelffeed.search import load_directory, matching_user_ids
from shelffeed.social_graph import following_ids
from shelffeed.store import DataStore, StoreError
from shelffeed.telemetry import SECTION_FAILURES_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def _degraded(section: str, viewer_id: str, exc: Exception) -> None:
    logger.warning(
        "Feed section %r failed for viewer %s: %s — rendering it empty",
        section,
        viewer_id,
        exc,
    )
    SECTION_FAILURES_TOTAL.labels(section=section).inc()


async def visible_authors(store: DataStore, viewer_id: str) -> list[str]:
    """The viewer plus everyone they follow. Never empty."""
    try:
        followed = await following_ids(store, viewer_id)
    except StoreError as exc:
        _degraded("following", viewer_id, exc)
        followed = []
    return list(dict.fromkeys([*followed, viewer_id]))


async def fetch_likes(store: DataStore, post_ids: list[str], limit: Optional[int] = None) -> list[PostLike]:
    if not post_ids:
        return []
    return await store.select(
        PostLike,
        PostLike.post_id.in_(post_ids),
        order_by=[PostLike.created_at.desc(), PostLike.user_id, PostLike.post_id, PostLike.like_id],
        limit=limit,
    )


async def _likes_section(store: DataStore, viewer_id: str, post_ids: list[str]) -> list[PostLike]:
    try:
        return dedupe_likes(await fetch_likes(store, post_ids))
    except StoreError as exc:
        _degraded("likes", viewer_id, exc)
        return []


async def assemble_feed(
    store: DataStore, viewer_id: str, query: Optional[str] = None
) -> list[FeedItem]:
    """Posts from the viewer and the people they follow, newest first."""
    with tracer.start_as_current_span("assemble_feed") as span:
        span.set_attribute("user.id", viewer_id)

        with tracer.start_as_current_span("stage1_visible_authors"):
            authors = await visible_authors(store, viewer_id)
        span.set_attribute("feed.visible_authors", len(authors))

        with tracer.start_as_current_span("stage2_candidate_posts"):
            try:
                posts: list[Post] = await store.select(
                    Post,
                    Post.user_id.in_(authors),
                    order_by=[Post.created_at.desc(), Post.kind, Post.user_id, Post.post_id],
                    limit=settings.feed_window,
                )
            except StoreError as exc:
                _degraded("posts", viewer_id, exc)
                posts = []

        if not posts:
            return []

        query = (query or "").strip()
        with tracer.start_as_current_span("stage3_reference_join"):
            post_ids = [p.post_id for p in posts]
            fetches = [
                fetch_papers(store, [p.paper_id for p in posts]),
                fetch_profiles(store, [p.user_id for p in posts]),
                _likes_section(store, viewer_id, post_ids),
            ]
            if query:
                fetches.append(load_directory(store))
            papers, profiles, likes, *rest = await asyncio.gather(*fetches)

        like_counts = Counter(like.post_id for like in likes)
        liked_by_me = {like.post_id for like in likes if like.user_id == viewer_id}

        items = [
            FeedItem(
                post_id=p.post_id,
                user_id=p.user_id,
                author=profiles.get(p.user_id),
                kind=p.kind,
                status=p.status,
                paper_id=p.paper_id,
                paper=papers.get(p.paper_id) if p.paper_id else None,
                target_user_id=p.target_user_id,
                like_count=like_counts[p.post_id],
                liked_by_me=p.post_id in liked_by_me,
                created_at=p.created_at,
            )
            for p in posts
        ]

        with tracer.start_as_current_span("stage4_filter_order"):
            if query:
                (directory,) = rest
                matching = matching_user_ids(directory, query)
                items = [item for item in items if item.user_id in matching]
            items = sort_timeline(items, feed_tiebreak)

        span.set_attribute("feed.items", len(items))
        return items


async def assemble_activity(store: DataStore, viewer_id: str) -> list[ActivityItem]:
    """Likes on the viewer's posts and new followers of the viewer, newest first."""
    with tracer.start_as_current_span("assemble_activity") as span:
        span.set_attribute("user.id", viewer_id)

        async def own_posts() -> list[Post]:
            try:
                return await store.select(Post, Post.user_id == viewer_id)
            except StoreError as exc:
                _degraded("own_posts", viewer_id, exc)
                return []

        async def new_followers() -> list[Follow]:
            try:
                return await store.select(
                    Follow,
                    Follow.followee_id == viewer_id,
                    order_by=[Follow.created_at.desc(), Follow.follower_id],
                    limit=settings.activity_follow_cap,
                )
            except StoreError as exc:
                _degraded("followers", viewer_id, exc)
                return []

        with tracer.start_as_current_span("stage1_sources"):
            posts, follows = await asyncio.gather(own_posts(), new_followers())
            posts_by_id = {p.post_id: p for p in posts}
            try:
                raw_likes = await fetch_likes(
                    store, list(posts_by_id), limit=settings.activity_like_cap
                )
            except StoreError as exc:
                _degraded("likes", viewer_id, exc)
                raw_likes = []
            likes = dedupe_likes(raw_likes)

        with tracer.start_as_current_span("stage2_reference_join"):
            liked_posts = [posts_by_id[like.post_id] for like in likes if like.post_id in posts_by_id]
            profiles, papers = await asyncio.gather(
                fetch_profiles(
                    store,
                    [like.user_id for like in likes] + [f.follower_id for f in follows],
                ),
                fetch_papers(store, [p.paper_id for p in liked_posts]),
            )

        items: list[ActivityItem] = []
        for like in likes:
            post = posts_by_id.get(like.post_id)
            paper_id = post.paper_id if post else None
            items.append(
                ActivityItem(
                    kind="post_liked",
                    actor_id=like.user_id,
                    actor=profiles.get(like.user_id),
                    post_id=like.post_id,
                    paper=papers.get(paper_id) if paper_id else None,
                    created_at=like.created_at,
                )
            )
        for edge in follows:
            items.append(
                ActivityItem(
                    kind="user_followed",
                    actor_id=edge.follower_id,
                    actor=profiles.get(edge.follower_id),
                    post_id=None,
                    paper=None,
                    created_at=edge.created_at,
                )
            )

        items = sort_timeline(items, activity_tiebreak)
        span.set_attribute("activity.items", len(items))
        return items
