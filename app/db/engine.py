"""Async SQLAlchemy engine and session factory.

With DATABASE_URL set, the engine targets PostgreSQL via asyncpg and
``session_scope()`` yields one transaction per unit of work (one request).
Without it, ``engine`` and ``async_session_factory`` are None and the
HTTP layer wires the in-memory repositories instead.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import SETTINGS
from app.core.metrics import SIDE_EFFECT_FAILURES

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all table models."""


if SETTINGS.database_url:
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=False,
        pool_size=5,
        max_overflow=10,
    )
    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
else:
    engine = None
    async_session_factory = None


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """One transaction: commit on clean exit, roll back on any exception.

    Row locks taken with ``SELECT ... FOR UPDATE`` are held until the
    commit or rollback here.
    """
    if async_session_factory is None:
        raise RuntimeError("DATABASE_URL is not configured")
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


AfterCommit = Callable[[Callable[[], Awaitable[None]]], None]


class CommitHooks:
    """Callbacks to run once the unit of work has committed.

    Each callback is best effort: a failure is logged and counted, and the
    remaining callbacks still run.
    """

    def __init__(self) -> None:
        self._callbacks: list[Callable[[], Awaitable[None]]] = []

    def add(self, callback: Callable[[], Awaitable[None]]) -> None:
        self._callbacks.append(callback)

    def __len__(self) -> int:
        return len(self._callbacks)

    async def run(self) -> None:
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                await callback()
            except Exception:
                SIDE_EFFECT_FAILURES.labels(effect="after_commit").inc()
                logger.exception("After-commit callback failed")


@asynccontextmanager
async def lifespan_db():
    if engine is None:
        logger.info("No DATABASE_URL configured, using in-memory repositories")
        yield
        return

    logger.info("Database engine created: %s", engine.url)
    yield
    await engine.dispose()
    logger.info("Database engine disposed")
