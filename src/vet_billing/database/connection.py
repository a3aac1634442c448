"""
Engine construction for the billing store.

PostgreSQL through asyncpg is the production store. SQLite through aiosqlite
is accepted for local runs and the test suite. Plain ``postgresql://`` and
``sqlite://`` URLs are upgraded to their async drivers.
"""

import asyncio
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from ..exceptions import ConnectionException
from ..utils.config import DatabaseURLValidator

logger = logging.getLogger(__name__)

ASYNC_DRIVERS = {
    "postgresql://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}

POOL_DEFAULTS: Dict[str, Any] = {
    "pool_size": 10,
    "max_overflow": 20,
    "pool_timeout": 30,
    "pool_recycle": 3600,
    "pool_pre_ping": True,
}


def get_async_url(database_url: str) -> str:
    """Rewrite a sync driver URL to its async driver; other URLs pass through."""
    for sync_prefix, async_prefix in ASYNC_DRIVERS.items():
        if database_url.startswith(sync_prefix):
            return async_prefix + database_url[len(sync_prefix) :]
    return database_url


def create_engine(
    database_url: str,
    echo: bool = False,
    use_null_pool: bool = False,
    connect_args: Optional[dict] = None,
    **pool_options: Any,
) -> AsyncEngine:
    """
    Create the async engine for the billing store.

    Args:
        database_url: PostgreSQL or SQLite URL, sync or async driver
        echo: Log emitted SQL
        use_null_pool: Open a fresh connection per checkout
        connect_args: Passed through to the DBAPI driver
        **pool_options: Overrides for ``POOL_DEFAULTS``

    Raises:
        ConfigurationException: If the URL is invalid or the driver unsupported
    """
    async_url = get_async_url(database_url)
    DatabaseURLValidator.validate_url(async_url)

    engine_kwargs: Dict[str, Any] = {"echo": echo}
    if connect_args:
        engine_kwargs["connect_args"] = connect_args

    # SQLite connections are file handles, nothing to pool
    if use_null_pool or async_url.startswith("sqlite"):
        engine_kwargs["poolclass"] = NullPool
    else:
        engine_kwargs["poolclass"] = AsyncAdaptedQueuePool
        engine_kwargs.update({**POOL_DEFAULTS, **pool_options})

    engine = create_async_engine(async_url, **engine_kwargs)
    target = urlparse(async_url).hostname or async_url.split(":", 1)[0]
    logger.info(f"Created billing store engine for {target}")
    return engine


async def check_connection(
    engine: AsyncEngine, max_retries: int = 3, retry_delay: float = 1.0
) -> bool:
    """
    Probe the store with ``SELECT 1``, backing off between attempts.

    Only this read-only probe is retried; billing writes never are.
    """
    attempts = max_retries + 1
    for attempt in range(attempts):
        try:
            async with engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            logger.debug("Billing store reachable")
            return True
        except Exception as e:
            if attempt + 1 < attempts:
                logger.warning(
                    f"Billing store probe failed (attempt {attempt + 1}/{attempts}): {e}"
                )
                await asyncio.sleep(retry_delay * (2**attempt))
            else:
                logger.error(f"Billing store unreachable after {attempts} attempts: {e}")
    return False


async def require_connection(engine: AsyncEngine, max_retries: int = 3) -> None:
    """
    Fail fast at startup when the store is unreachable.

    Raises:
        ConnectionException: With the credential-free URL in its details
    """
    if not await check_connection(engine, max_retries=max_retries, retry_delay=0.5):
        raise ConnectionException("Database is not reachable", database_url=str(engine.url))


def get_database_url(
    host: str,
    port: int = 5432,
    database: str = "postgres",
    username: str = "postgres",
    password: str = "",  # nosec B107
    driver: str = "asyncpg",
    **params: Any,
) -> str:
    """Assemble a PostgreSQL URL; extra keyword arguments become query parameters."""
    auth = f"{username}:{password}" if password else username
    url = f"postgresql+{driver}://{auth}@{host}:{port}/{database}"
    if params:
        url += "?" + "&".join(f"{key}={value}" for key, value in params.items())
    return url
