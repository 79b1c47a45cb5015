"""
Database Connection Module
Handles the SQLAlchemy async engine and the connectivity probe that decides
whether orders go to the database or to the in-process fallback store.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


# Base class for all our models
class Base(DeclarativeBase):
    pass


def build_engine(
    database_url: str,
    echo: bool = False,
    connect_timeout: float = 3.0,
) -> AsyncEngine:
    """
    Create the async engine for ``database_url``.

    In-memory SQLite shares one connection (StaticPool) so every session
    sees the same tables; PostgreSQL gets a bounded pool and a libpq
    connect timeout so an unreachable server fails fast.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.endswith("://"):
            kwargs["poolclass"] = StaticPool
        return create_async_engine(database_url, echo=echo, **kwargs)

    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=5,  # Connection pool size
        max_overflow=10,  # Extra connections when pool is full
        pool_pre_ping=True,
        connect_args={"connect_timeout": int(max(1, connect_timeout))},
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory - creates new database sessions."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False  # Objects remain accessible after commit
    )


class DatabaseMonitor:
    """
    Tracks whether the durable backend is reachable.

    ``is_reachable()`` is consulted before every store operation. While the
    backend is marked unreachable it is re-probed at most once every
    ``reprobe_seconds``; the first successful probe also creates the schema.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        connect_timeout: float = 3.0,
        reprobe_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.engine = engine
        self.connect_timeout = connect_timeout
        self.reprobe_seconds = reprobe_seconds
        self._clock = clock
        self._reachable = False
        self._schema_ready = False
        self._last_probe: Optional[float] = None
        self.last_error: Optional[str] = None

    @property
    def reachable(self) -> bool:
        return self._reachable

    async def probe(self) -> bool:
        """Open a connection, run ``SELECT 1`` and create tables if needed."""
        self._last_probe = self._clock()
        try:
            await asyncio.wait_for(self._check(), timeout=self.connect_timeout)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            self.last_error = str(e) or e.__class__.__name__
            logger.warning(f"⚠️ Database unreachable, using fallback store: {self.last_error}")
            self._reachable = False
            return False

        if not self._reachable:
            logger.info("✅ Database reachable, using durable store")
        self._reachable = True
        self.last_error = None
        return True

    async def _check(self) -> None:
        async with self.engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if not self._schema_ready:
                await conn.run_sync(Base.metadata.create_all)
                self._schema_ready = True
                logger.info("✅ Database tables ready")

    async def is_reachable(self) -> bool:
        """Capability check used for per-operation store selection."""
        if self._reachable:
            return True
        if self._last_probe is None or self._clock() - self._last_probe >= self.reprobe_seconds:
            return await self.probe()
        return False

    def mark_unreachable(self, reason: str) -> None:
        """Record a connectivity failure seen by a store operation."""
        if self._reachable:
            logger.error(f"❌ Lost database connectivity: {reason}")
        self._reachable = False
        self._last_probe = self._clock()
        self.last_error = reason
