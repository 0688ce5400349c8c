"""Database engine ownership and session utilities."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from investlog.db.base import Base

logger = logging.getLogger(__name__)


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _is_memory_sqlite(url: str) -> bool:
    return _is_sqlite(url) and (":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"))


def _enable_wal(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Explicitly owned database handle.

    The engine is created by :meth:`connect` and released by :meth:`dispose`;
    ``async with Database(url) as db`` scopes both so callers never depend on
    process-exit hooks to close connections.
    """

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self.url = url
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database is not connected")
        return self._engine

    @property
    def connected(self) -> bool:
        return self._engine is not None

    def _create_engine(self) -> AsyncEngine:
        kwargs: dict[str, Any] = {"echo": self.echo, "future": True}
        if _is_memory_sqlite(self.url):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
        engine = create_async_engine(self.url, **kwargs)
        if _is_sqlite(self.url) and not _is_memory_sqlite(self.url):
            event.listen(engine.sync_engine, "connect", _enable_wal)
        return engine

    async def connect(self) -> "Database":
        """Create the engine and ensure all tables exist."""

        if self._engine is not None:
            return self
        # Import models so that SQLAlchemy is aware of all tables before create_all runs.
        import investlog.models  # noqa: F401  # pylint: disable=unused-import

        engine = self._create_engine()
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError:
            logger.exception("Failed to initialise database schema")
            await engine.dispose()
            raise
        self._engine = engine
        self._session_factory = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
        logger.info("Database connected (%s)", engine.url.render_as_string(hide_password=True))
        return self

    async def dispose(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database connection released")

    def session(self) -> AsyncSession:
        """Return a new AsyncSession; use it as an async context manager."""

        if self._session_factory is None:
            raise RuntimeError("Database is not connected")
        return self._session_factory()

    async def __aenter__(self) -> "Database":
        return await self.connect()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.dispose()


__all__ = ["Database"]
