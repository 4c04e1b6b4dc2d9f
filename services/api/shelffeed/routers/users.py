"""
User & social graph endpoints:
  GET    /users/me                     — the viewer's profile (created on first call)
  PUT    /users/me                     — edit username / display name / bio / avatar
  DELETE /users/me                     — delete the viewer's data
  GET    /users/search?q=              — fuzzy search over the whole directory
  GET    /users/{username}             — public profile + stats
  GET    /users/{username}/followers   — people following the user
  GET    /users/{username}/following   — people the user follows
  GET    /users/{username}/library     — the user's shelved papers (?status= filter)
  GET    /users/{user_id}/follow       — does the viewer follow user_id?
  POST   /users/{user_id}/follow       — follow (idempotent)
  DELETE /users/{user_id}/follow       — unfollow (no-op if not following)
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from opentelemetry import trace

from shelffeed import library, profiles, social_graph
from shelffeed.auth import Session, get_current_session, require_session
from shelffeed.database import get_store
from shelffeed.models import Profile
from shelffeed.schemas import (
    FollowListEntry,
    FollowState,
    LibraryItemResponse,
    ProfileResponse,
    ProfileSnapshot,
    ProfileUpdate,
    PublicProfileResponse,
    ShelfStatus,
)
from shelffeed.search import search_profiles
from shelffeed.store import DataStore

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


async def _profile_or_404(store: DataStore, username: str) -> Profile:
    profile = await profiles.get_profile_by_username(store, username)
    if not profile:
        raise HTTPException(status_code=404, detail="User not found")
    return profile


@router.get("/me", response_model=ProfileResponse)
async def get_me(
    session: Session = Depends(require_session),
    store: DataStore = Depends(get_store),
):
    return await profiles.ensure_profile(store, session.user_id)


@router.put("/me", response_model=ProfileResponse)
async def update_me(
    body: ProfileUpdate,
    session: Session = Depends(require_session),
    store: DataStore = Depends(get_store),
):
    with tracer.start_as_current_span("update_profile"):
        try:
            return await profiles.update_profile(store, session.user_id, body)
        except profiles.InvalidUsernameError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except profiles.UsernameTakenError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(
    session: Session = Depends(require_session),
    store: DataStore = Depends(get_store),
):
    with tracer.start_as_current_span("delete_account_data"):
        await profiles.delete_account_data(store, session.user_id)


@router.get("/search", response_model=list[ProfileSnapshot])
async def search_users(
    q: str = Query("", description="Fuzzy match against display name or username"),
    session: Session = Depends(require_session),
    store: DataStore = Depends(get_store),
):
    return await search_profiles(store, q)


@router.get("/{username}", response_model=PublicProfileResponse)
async def get_user(
    username: str,
    session: Session | None = Depends(get_current_session),
    store: DataStore = Depends(get_store),
):
    profile = await _profile_or_404(store, username)
    viewer_id = session.user_id if session else None
    stats = await profiles.profile_stats(store, profile.user_id)
    following = await social_graph.is_following(store, viewer_id, profile.user_id)
    return PublicProfileResponse(
        profile=ProfileResponse.model_validate(profile),
        stats=stats,
        is_following=following,
    )


@router.get("/{username}/followers", response_model=list[FollowListEntry])
async def list_followers(username: str, store: DataStore = Depends(get_store)):
    profile = await _profile_or_404(store, username)
    return await social_graph.list_followers(store, profile.user_id)


@router.get("/{username}/following", response_model=list[FollowListEntry])
async def list_following(username: str, store: DataStore = Depends(get_store)):
    profile = await _profile_or_404(store, username)
    return await social_graph.list_following(store, profile.user_id)


@router.get("/{username}/library", response_model=list[LibraryItemResponse])
async def list_user_library(
    username: str,
    status_filter: Optional[ShelfStatus] = Query(None, alias="status"),
    store: DataStore = Depends(get_store),
):
    profile = await _profile_or_404(store, username)
    return await library.list_library(store, profile.user_id, status_filter)


@router.get("/{user_id}/follow", response_model=FollowState)
async def get_follow_state(
    user_id: str,
    session: Session = Depends(require_session),
    store: DataStore = Depends(get_store),
):
    following = await social_graph.is_following(store, session.user_id, user_id)
    return FollowState(user_id=user_id, following=following)


@router.post("/{user_id}/follow", response_model=FollowState)
async def follow_user(
    user_id: str,
    session: Session = Depends(require_session),
    store: DataStore = Depends(get_store),
):
    """Create a viewer → user_id edge. Following someone twice is a no-op."""
    with tracer.start_as_current_span("follow_user"):
        try:
            await social_graph.follow(store, session.user_id, user_id)
        except social_graph.SelfFollowError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    return FollowState(user_id=user_id, following=True)


@router.delete("/{user_id}/follow", response_model=FollowState)
async def unfollow_user(
    user_id: str,
    session: Session = Depends(require_session),
    store: DataStore = Depends(get_store),
):
    with tracer.start_as_current_span("unfollow_user"):
        await social_graph.unfollow(store, session.user_id, user_id)
    return FollowState(user_id=user_id, following=False)
