"""
Pytest configuration and fixtures for the Shelf Feed API tests.
"""

import os
from datetime import datetime, timedelta
from typing import Optional

# Set test environment before importing app modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["OTEL_ENABLED"] = "false"

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from shelffeed.database import init_db, make_sessionmaker
from shelffeed.models import Follow, Paper, Post, PostLike, Profile
from shelffeed.store import UNAVAILABLE, DataStore, StoreError

T0 = datetime(2026, 1, 1, 12, 0, 0)


def at(seconds: float) -> datetime:
    """A fixed timestamp `seconds` after T0."""
    return T0 + timedelta(seconds=seconds)


def make_test_engine(db_path):
    # NullPool: every session opens its own aiosqlite connection, so the
    # engine can be shared between the test loop and TestClient's loop.
    return create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)


@pytest_asyncio.fixture
async def store(tmp_path):
    """A DataStore over a fresh SQLite database with all tables created."""
    engine = make_test_engine(tmp_path / "shelf.db")
    await init_db(engine)
    yield DataStore(make_sessionmaker(engine))
    await engine.dispose()


class Seeder:
    """Writes rows with explicit timestamps straight through the store."""

    def __init__(self, store: DataStore):
        self.store = store

    async def profile(self, user_id: str, username: Optional[str] = None, display_name: Optional[str] = None):
        await self.store.insert(
            Profile(user_id=user_id, username=username, display_name=display_name, created_at=T0)
        )

    async def post(
        self,
        post_id: str,
        user_id: str,
        t: float,
        kind: str = "added_to_library",
        paper_id: Optional[str] = None,
        status: Optional[str] = None,
    ):
        await self.store.insert(
            Post(post_id=post_id, user_id=user_id, kind=kind, paper_id=paper_id, status=status, created_at=at(t))
        )

    async def follow(self, follower_id: str, followee_id: str, t: float = 0):
        await self.store.insert(Follow(follower_id=follower_id, followee_id=followee_id, created_at=at(t)))

    async def like(self, user_id: str, post_id: str, t: float):
        await self.store.insert(PostLike(user_id=user_id, post_id=post_id, created_at=at(t)))

    async def paper(self, paper_id: str, title: str = "A paper", authors: Optional[list] = None):
        await self.store.insert(
            Paper(paper_id=paper_id, title=title, authors=authors or ["Ada Lovelace"], year=2024)
        )


@pytest.fixture
def seed(store):
    return Seeder(store)


class FlakyStore(DataStore):
    """A DataStore whose selects against some models fail as if the store were down."""

    def __init__(self, inner: DataStore, fail_on):
        super().__init__(inner._session_factory)
        self.fail_on = set(fail_on)

    async def select(self, model, *filters, **kwargs):
        target = model[0] if isinstance(model, tuple) else model
        target = getattr(target, "class_", target)
        if target in self.fail_on:
            raise StoreError(UNAVAILABLE, f"{target.__name__} unavailable")
        return await super().select(model, *filters, **kwargs)


@pytest.fixture
def flaky_store(store):
    def build(*models):
        return FlakyStore(store, models)

    return build
