"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.
"""
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field

PostKind = Literal[
    "added_to_shelf", "status_changed", "added_to_library", "user_joined", "followed"
]
ShelfStatus = Literal["to_read", "reading", "read"]
ActivityKind = Literal["post_liked", "user_followed"]

USERNAME_PATTERN = r"^[a-z0-9_.]{3,20}$"


# ──────────────────────────── Profiles ────────────────────────────────────

class ProfileSnapshot(BaseModel):
    """The slice of a profile rendered next to a feed item."""
    user_id: str
    username: Optional[str]
    display_name: Optional[str]
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True


class ProfileResponse(ProfileSnapshot):
    bio: Optional[str] = None
    created_at: datetime


class ProfileUpdate(BaseModel):
    username: Optional[str] = Field(None, pattern=USERNAME_PATTERN)
    display_name: Optional[str] = Field(None, max_length=255)
    bio: Optional[str] = None
    avatar_url: Optional[str] = Field(None, max_length=500)


class FollowCounts(BaseModel):
    followers: int
    following: int


class ProfileStats(FollowCounts):
    library_count: int
    posts_count: int


class PublicProfileResponse(BaseModel):
    profile: ProfileResponse
    stats: ProfileStats
    is_following: bool


class FollowListEntry(BaseModel):
    user_id: str
    profile: Optional[ProfileSnapshot]
    followed_at: datetime


class FollowState(BaseModel):
    user_id: str
    following: bool


# ──────────────────────────── Papers / Library ────────────────────────────

class PaperRecord(BaseModel):
    paper_id: str
    title: str
    authors: list[str] = []
    year: Optional[int] = None
    url: Optional[str] = None
    source: Optional[str] = None

    class Config:
        from_attributes = True


class PaperUpsert(BaseModel):
    title: str = Field(..., min_length=1)
    authors: list[str] = []
    year: Optional[int] = None
    url: Optional[str] = None
    source: Optional[str] = None


class LibraryAdd(BaseModel):
    paper_id: str
    status: ShelfStatus = "to_read"


class StatusUpdate(BaseModel):
    status: ShelfStatus


class LibraryItemResponse(BaseModel):
    paper_id: str
    status: ShelfStatus
    inserted_at: datetime
    paper: Optional[PaperRecord]


# ──────────────────────────── Posts ───────────────────────────────────────

class PostCreate(BaseModel):
    kind: PostKind
    paper_id: Optional[str] = None
    status: Optional[ShelfStatus] = None
    target_user_id: Optional[str] = None


class PostResponse(BaseModel):
    post_id: str
    user_id: str
    kind: PostKind
    paper_id: Optional[str]
    status: Optional[ShelfStatus]
    target_user_id: Optional[str]
    paper: Optional[PaperRecord] = None
    created_at: datetime


class LikeState(BaseModel):
    post_id: str
    liked: bool
    like_count: int


# ──────────────────────────── Feeds ───────────────────────────────────────

class FeedItem(BaseModel):
    """A post from the viewer or someone they follow, with references resolved."""
    post_id: str
    user_id: str
    author: Optional[ProfileSnapshot]
    kind: PostKind
    status: Optional[ShelfStatus]
    paper_id: Optional[str]
    # None when the paper row is missing; the item still renders
    paper: Optional[PaperRecord]
    target_user_id: Optional[str]
    like_count: int
    liked_by_me: bool
    created_at: datetime


class FeedResponse(BaseModel):
    user_id: str
    items: list[FeedItem]
    # True renders the "no activity" state
    empty: bool
    query: Optional[str] = None
    latency_ms: float


class ActivityItem(BaseModel):
    """Something that happened to the viewer: a like on their post or a new follower."""
    kind: ActivityKind
    actor_id: str
    actor: Optional[ProfileSnapshot]
    post_id: Optional[str]
    paper: Optional[PaperRecord]
    created_at: datetime


class ActivityResponse(BaseModel):
    user_id: str
    items: list[ActivityItem]
    empty: bool
    latency_ms: float
