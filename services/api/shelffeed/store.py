"""
Data Store adapter.

A thin select / insert / update / delete / count surface over the async
session factory. Each call is its own unit of work (own session, own commit),
so independent reads can be issued concurrently with asyncio.gather.

Driver errors are classified into a StoreError with a code:
  unique_violation — duplicate key (MySQL 1062, Postgres 23505, SQLite UNIQUE)
  integrity        — any other constraint failure
  unavailable      — connection lost, timeout, pool exhausted
Everything else propagates unchanged.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "unique_violation"
INTEGRITY = "integrity"
UNAVAILABLE = "unavailable"

_UNIQUE_MARKERS = ("unique", "duplicate")


class StoreError(Exception):
    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or code)
        self.code = code


def classify_integrity_error(exc: IntegrityError) -> str:
    orig = exc.orig
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode == "23505":
        return UNIQUE_VIOLATION
    args = getattr(orig, "args", ())
    if args and args[0] == 1062:  # MySQL / TiDB ER_DUP_ENTRY
        return UNIQUE_VIOLATION
    text = str(orig).lower()
    if any(marker in text for marker in _UNIQUE_MARKERS):
        return UNIQUE_VIOLATION
    return INTEGRITY


class DataStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
        except IntegrityError as exc:
            raise StoreError(classify_integrity_error(exc), str(exc.orig)) from exc
        except (
            OperationalError,
            InterfaceError,
            PoolTimeoutError,
            asyncio.TimeoutError,
            OSError,
        ) as exc:
            raise StoreError(UNAVAILABLE, str(exc)) from exc

    async def select(
        self,
        model: Any,
        *filters: Any,
        order_by: Sequence[Any] = (),
        limit: Optional[int] = None,
    ) -> list:
        """Rows of `model` (an ORM class or a tuple of columns) matching all filters."""
        columns = model if isinstance(model, tuple) else (model,)
        stmt = select(*columns).where(*filters).order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._session() as session:
            result = await session.execute(stmt)
            if isinstance(model, tuple):
                return [tuple(row) for row in result.all()]
            return list(result.scalars().all())

    async def select_one(self, model: Any, *filters: Any) -> Optional[Any]:
        rows = await self.select(model, *filters, limit=1)
        return rows[0] if rows else None

    async def insert(self, *rows: Any) -> None:
        async with self._session() as session:
            session.add_all(rows)

    async def update(self, model: Any, values: dict, *filters: Any) -> int:
        async with self._session() as session:
            result = await session.execute(update(model).where(*filters).values(**values))
            return result.rowcount

    async def delete(self, model: Any, *filters: Any) -> int:
        async with self._session() as session:
            result = await session.execute(delete(model).where(*filters))
            return result.rowcount

    async def count(self, model: Any, *filters: Any) -> int:
        async with self._session() as session:
            result = await session.execute(
                select(func.count()).select_from(model).where(*filters)
            )
            return int(result.scalar_one())

    async def delete_many(self, operations: Iterable[tuple]) -> None:
        """Run several (model, *filters) deletes in one transaction."""
        async with self._session() as session:
            for model, *filters in operations:
                await session.execute(delete(model).where(*filters))
