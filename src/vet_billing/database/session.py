"""
Session handling for the billing store.

A ``SessionManager`` owns the async session factory for one engine. The
application builds it once at startup and hands it to the lifecycle manager
and anything else that talks to the database; nothing here is global.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, Optional

from sqlalchemy import MetaData, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ..exceptions import PersistenceException

logger = logging.getLogger(__name__)

DEFAULT_SESSION_OPTIONS: Dict[str, Any] = {
    # Invoice views are built after commit from the loaded rows.
    "expire_on_commit": False,
    "autoflush": True,
}


class SessionManager:
    """Hands out sessions and transactions bound to one engine."""

    def __init__(
        self, engine: AsyncEngine, session_config: Optional[Dict[str, Any]] = None
    ):
        """
        Args:
            engine: Async engine from ``create_engine``
            session_config: Overrides for ``DEFAULT_SESSION_OPTIONS``
        """
        self.engine = engine
        self._is_initialized = False

        options = {**DEFAULT_SESSION_OPTIONS, **(session_config or {})}
        self.session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            autoflush=options["autoflush"],
            expire_on_commit=options["expire_on_commit"],
        )

    async def create_session(self) -> AsyncSession:
        """Open a bare session; the caller closes it."""
        return self.session_factory()

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Yield a session for reads, closing it on exit.

        Any error inside the block rolls the session back before it
        propagates.

        Example:
            async with session_manager.get_session() as session:
                invoices = await BillingRepository(session).list_invoices()
        """
        session = await self.create_session()
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error(f"Rolling back billing session after error: {e}")
            raise
        finally:
            await session.close()

    @asynccontextmanager
    async def get_transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Yield a session inside one transaction.

        The transaction commits when the block exits cleanly. On any error it
        rolls back as a whole; database errors, including constraint
        violations raised at commit, surface as ``PersistenceException`` and
        are never retried here.

        Example:
            async with session_manager.get_transaction() as session:
                await BillingRepository(session).insert_invoice(payload)
        """
        async with self.get_session() as session:
            try:
                async with session.begin():
                    yield session
            except SQLAlchemyError as e:
                logger.error(f"Billing transaction rolled back: {e}")
                raise PersistenceException(
                    "Database transaction failed",
                    operation="transaction",
                    original_error=e,
                ) from e

    async def execute_in_transaction(
        self,
        operation: Callable[..., Awaitable[Any]],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """
        Run ``operation(session, *args, **kwargs)`` in its own transaction.

        Persistence failures are tagged with the operation's name.
        """
        try:
            async with self.get_transaction() as session:
                return await operation(session, *args, **kwargs)
        except PersistenceException as e:
            e.details["operation"] = getattr(operation, "__name__", repr(operation))
            raise

    async def _timed_probe(self, transactional: bool) -> Dict[str, Any]:
        opened = self.get_transaction() if transactional else self.get_session()
        started = time.perf_counter()
        async with opened as session:
            await session.execute(text("SELECT 1"))
        return {
            "status": "pass",
            "response_time": round((time.perf_counter() - started) * 1000, 2),  # ms
        }

    async def health_check(self) -> Dict[str, Any]:
        """
        Probe the store with a plain query and a committed transaction.

        Returns:
            ``{"status": "healthy" | "unhealthy", "timestamp": ..., "checks": {...}}``
        """
        report: Dict[str, Any] = {"status": "healthy", "timestamp": time.time(), "checks": {}}
        try:
            report["checks"]["basic_query"] = await self._timed_probe(transactional=False)
            report["checks"]["transaction"] = await self._timed_probe(transactional=True)
        except (OperationalError, PersistenceException) as e:
            report["status"] = "unhealthy"
            report["checks"]["connection"] = {
                "status": "fail",
                "error": str(e),
                "error_type": type(e).__name__,
            }
            logger.error(f"Billing store health check failed: {e}")
        return report

    async def initialize_database(self, metadata: Optional[MetaData] = None) -> bool:
        """
        Create the billing tables for ``metadata`` if given.

        Returns:
            True once the store is ready
        """
        if metadata is not None:
            async with self.engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
            logger.info(f"Created billing tables: {', '.join(sorted(metadata.tables))}")

        self._is_initialized = True
        return True

    async def cleanup_database(
        self, metadata: Optional[MetaData] = None, drop_all: bool = False
    ) -> None:
        """Dispose of the engine, dropping the billing tables first if asked."""
        if drop_all and metadata is not None:
            async with self.engine.begin() as conn:
                await conn.run_sync(metadata.drop_all)
            logger.warning("Dropped all billing tables")

        await self.close_all_sessions()

    async def close_all_sessions(self) -> None:
        """Dispose of the engine's pooled connections."""
        await self.engine.dispose()
        logger.info("Billing store connections closed")

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized
