"""Database handle: owns the engine/pool and scopes one session per unit of work."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, nullcontext
from typing import Any, AsyncIterator

from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from licensehub.core.errors import AppError, StoreUnavailable
from licensehub.db.models import Base

logger = logging.getLogger(__name__)

# lock_not_available, query_canceled (statement/lock timeout), serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = frozenset({"55P03", "57014", "40001", "40P01"})


def is_retryable(exc: SQLAlchemyError) -> bool:
    """Lock timeouts, deadlocks and lost connections: the same request may succeed if retried."""
    if isinstance(exc, OperationalError):
        return True
    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated:
            return True
        orig = exc.orig
        code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        return code in RETRYABLE_SQLSTATES
    return False


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Owned store resource. Registered in the container at startup and disposed
    on shutdown; every unit of work goes through transaction(), which commits
    on success and rolls back on every other exit path.
    """

    def __init__(self, url: str, *, lock_timeout_ms: int = 0, **engine_options: Any) -> None:
        self.url = url
        self.lock_timeout_ms = lock_timeout_ms
        self.engine: AsyncEngine = create_async_engine(url, **engine_options)
        self.dialect = self.engine.dialect.name
        if self.dialect == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        self._sessions = async_sessionmaker(self.engine, expire_on_commit=False, autoflush=False)
        # SQLite has no row locks and admits one writer at a time; writers queue here instead
        self._sqlite_writer = asyncio.Lock() if self.dialect == "sqlite" else None

    async def create_all(self) -> None:
        """Create missing tables and indexes (idempotent)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Schema ready on %s", self.engine.url.render_as_string(hide_password=True))

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def transaction(self, *, write: bool = False) -> AsyncIterator[AsyncSession]:
        """
        One transaction. Commit when the block exits normally; roll back on any
        exception, then re-raise it. Store failures come out as AppError:
        StoreUnavailable when a retry may succeed, a plain server error otherwise.
        """
        guard = self._sqlite_writer if write and self._sqlite_writer is not None else nullcontext()
        async with guard:
            session = self._sessions()
            try:
                if write and self.dialect == "postgresql" and self.lock_timeout_ms:
                    await session.execute(text(f"SET LOCAL lock_timeout = {int(self.lock_timeout_ms)}"))
                yield session
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                if is_retryable(exc):
                    logger.warning("Retryable store error, rolled back: %s", exc)
                    raise StoreUnavailable("Store busy, retry the request") from exc
                logger.exception("Store error, rolled back")
                raise AppError("Server error") from exc
            except BaseException:
                await session.rollback()
                raise
            finally:
                await session.close()
