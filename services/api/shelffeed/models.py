"""
SQLAlchemy ORM models for TiDB.

Tables:
  profiles     — public user profiles (id comes from the auth gateway)
  follows      — social graph edges (follower → followee)
  posts        — immutable activity events emitted by a user
  post_likes   — user × post likes; duplicate rows per pair are tolerated
  papers       — shared paper reference data keyed by OpenAlex id
  user_papers  — a user's library (one row per user/paper pair)

There are no foreign keys to profiles: an account deletion removes the
profile while other users' rows may still point at it, and readers treat a
missing profile as absence.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from shelffeed.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    # Naive UTC: SQLite and MySQL DATETIME both drop tzinfo on the way back
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Profile(Base):
    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    # Null until the user picks one in settings
    username: Mapped[Optional[str]] = mapped_column(String(20), unique=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    bio: Mapped[Optional[str]] = mapped_column(Text)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )


class Follow(Base):
    __tablename__ = "follows"

    follower_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    followee_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        # Fast lookup "who follows user X?": followers list and activity feed
        Index("idx_followee", "followee_id"),
    )


class Post(Base):
    __tablename__ = "posts"

    post_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    # 'added_to_shelf' | 'status_changed' | 'added_to_library' | 'user_joined' | 'followed'
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    paper_id: Mapped[Optional[str]] = mapped_column(String(64))
    # 'to_read' | 'reading' | 'read' | None
    status: Mapped[Optional[str]] = mapped_column(String(16))
    # Set for 'followed' posts only
    target_user_id: Mapped[Optional[str]] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_posts_user", "user_id"),
        Index("idx_posts_created", "created_at"),
    )


class PostLike(Base):
    __tablename__ = "post_likes"

    # Surrogate key: concurrent toggles from several sessions may insert more
    # than one row for the same (user, post); readers deduplicate.
    like_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    post_id: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_likes_post", "post_id"),
        Index("idx_likes_user_post", "user_id", "post_id"),
    )


class Paper(Base):
    __tablename__ = "papers"

    paper_id: Mapped[str] = mapped_column(String(64), primary_key=True)  # OpenAlex id
    title: Mapped[str] = mapped_column(Text, nullable=False)
    # Ordered list[str] of author display names
    authors: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    year: Mapped[Optional[int]] = mapped_column(Integer)
    url: Mapped[Optional[str]] = mapped_column(String(500))
    source: Mapped[Optional[str]] = mapped_column(String(255))


class LibraryItem(Base):
    __tablename__ = "user_papers"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    paper_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="to_read")
    inserted_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), nullable=False
    )
