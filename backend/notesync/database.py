"""
NoteSync Backend — Database Resource
=====================================

What:  Async SQLAlchemy engine + session factory wrapped in a `Database`
       resource with an explicit open/close lifecycle.
How:   The application container owns one `Database`; the lifespan handler
       opens it on startup and closes it on shutdown. Request handlers receive
       sessions from it through `get_db_session` (see dependencies.py).
       Tests open their own instance against in-memory SQLite.

Connection pooling (PostgreSQL):
    pool_size / max_overflow from settings, pool_pre_ping on, connections
    recycled hourly. SQLite URLs use SQLAlchemy's defaults, with a StaticPool
    for in-memory databases so every session sees the same data.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from notesync.config import Settings, settings as default_settings
from notesync.exceptions import ConflictError, InternalError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models; its metadata drives Alembic and create_all."""
    pass


class Database:
    """
    Process-wide connection pool with an explicit lifecycle.

    Lifecycle:
        Database(url) → open() → session() ... → close()

    `session()` raises RuntimeError if the resource has not been opened.
    """

    def __init__(self, url: Optional[str] = None, config: Optional[Settings] = None):
        self.config = config or default_settings
        self.url = url or self.config.database_url
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database is not open")
        return self._engine

    def _engine_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {"echo": self.config.log_level == "DEBUG"}
        if self.url.startswith("sqlite"):
            if ":memory:" in self.url or self.url.rstrip("/").endswith("sqlite+aiosqlite:"):
                options["poolclass"] = StaticPool
            return options
        options.update(
            pool_size=self.config.db_pool_size,
            max_overflow=self.config.db_max_overflow,
            pool_pre_ping=self.config.db_pool_pre_ping,
            pool_recycle=3600,
        )
        return options

    async def open(self, create_schema: bool = False) -> None:
        """
        Create the engine and verify connectivity.

        The check runs `SELECT 1` with tenacity's exponential backoff on
        OperationalError / OSError, so a database that is still starting
        (docker-compose) does not fail the boot. When `create_schema` is set
        the ORM metadata is created directly (dev/tests; production uses
        Alembic).
        """
        if self._engine is not None:
            return

        engine = create_async_engine(self.url, **self._engine_options())

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type((OperationalError, OSError)),
                stop=stop_after_attempt(self.config.db_connect_retry_attempts),
                wait=wait_exponential(multiplier=0.5, max=self.config.db_connect_retry_max_wait),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    async with engine.connect() as conn:
                        await conn.execute(text("SELECT 1"))

            if create_schema:
                # Models register themselves on Base.metadata at import time
                import notesync.models  # noqa: F401

                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
        except Exception:
            await engine.dispose()
            raise

        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info("Database opened (%s)", engine.url.get_backend_name())

    async def close(self) -> None:
        """Dispose the pool. Safe to call on a closed database."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database closed")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Yield a session; commit on success, roll back on any exception.

        Stores and the coordinator may commit earlier themselves (two-phase
        cascades, shielded pipeline persistence); the final commit is then a
        no-op.
        """
        if self._session_factory is None:
            raise RuntimeError("Database is not open")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except BaseException:
                await session.rollback()
                raise

    async def ping(self) -> bool:
        """Lightweight connectivity probe for the health endpoint."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Database ping failed: %s", str(e))
            return False


@asynccontextmanager
async def storage_errors(
    db: AsyncSession,
    operation: str,
    conflict_message: Optional[str] = None,
    constraint: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
) -> AsyncIterator[None]:
    """
    Translate SQLAlchemy failures raised inside the block.

    IntegrityError → ConflictError when `conflict_message` is given, otherwise
    InternalError; any other SQLAlchemyError → InternalError. The session is
    rolled back first so it stays usable.
    """
    try:
        yield
    except IntegrityError as e:
        await db.rollback()
        if conflict_message is None:
            logger.error("Integrity error during %s: %s", operation, str(e.orig))
            raise InternalError(
                context={**(context or {}), "operation": operation, "error": str(e.orig)}
            ) from e
        raise ConflictError(
            message=conflict_message,
            constraint=constraint,
            context=context,
        ) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Storage error during %s: %s", operation, str(e), exc_info=True)
        raise InternalError(
            context={**(context or {}), "operation": operation, "error": str(e)}
        ) from e
