# ============================================================================
# POSTGRESQL CLIENT
# ============================================================================
# STATUS: Infrastructure - Async PostgreSQL access
# PURPOSE: Query client and connection pool lifecycle for psycopg3 async
# CREATED: 18 OCT 2026
# ============================================================================
"""
PostgreSQL Client

The provisioner only needs one capability from the database: run a
statement, optionally with parameters, and get rows back. That is the
DatabaseClient protocol. AsyncPostgreSQLClient implements it on top of a
psycopg_pool AsyncConnectionPool; each call checks out its own connection,
which commits when returned to the pool.

Pool configuration comes from the environment:
1. DATABASE_URL
2. Individual POSTGRES_* components

Usage:
    from infrastructure.postgresql import DatabasePool, AsyncPostgreSQLClient

    async with DatabasePool() as pool:
        client = AsyncPostgreSQLClient(pool)
        rows = await client.query("SELECT 1 AS one")
"""

import os
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from core.config import get_defaults

logger = logging.getLogger(__name__)

Query = Union[str, sql.Composable]

# Global pool instance
_pool: Optional[AsyncConnectionPool] = None


class DatabaseClient(Protocol):
    """Minimal async query interface used by the provisioner."""

    async def query(
        self, query: Query, params: Optional[Sequence[Any]] = None
    ) -> List[Dict[str, Any]]:
        ...


class AsyncPostgreSQLClient:
    """DatabaseClient backed by an async connection pool."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    async def query(
        self, query: Query, params: Optional[Sequence[Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Execute a statement and return its rows as dicts.

        Statements without a result set (DDL) return an empty list.
        """
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            cursor = await conn.execute(query, params)
            if cursor.description is None:
                return []
            return await cursor.fetchall()


# ============================================================================
# POOL LIFECYCLE
# ============================================================================

def get_connection_string() -> str:
    """
    Get database connection string from environment.

    Priority:
    1. DATABASE_URL environment variable
    2. Individual POSTGRES_* components

    Returns:
        PostgreSQL connection string
    """
    if url := os.environ.get("DATABASE_URL"):
        return url

    host = os.environ.get("POSTGRES_HOST", "localhost")
    port = os.environ.get("POSTGRES_PORT", "5432")
    name = os.environ.get("POSTGRES_DB", "postgres")
    user = os.environ.get("POSTGRES_USER", "postgres")
    password = os.environ.get("POSTGRES_PASSWORD", "")
    sslmode = os.environ.get("POSTGRES_SSLMODE", "prefer")

    return f"postgresql://{user}:{password}@{host}:{port}/{name}?sslmode={sslmode}"


def _safe_conninfo(conninfo: str) -> str:
    """Connection info with credentials stripped, for logs."""
    if "@" in conninfo:
        return conninfo.split("@")[-1]
    if "password=" in conninfo:
        return conninfo.split("password=")[0] + "password=***"
    return conninfo


async def init_pool(
    min_size: Optional[int] = None,
    max_size: Optional[int] = None,
    connection_string: Optional[str] = None,
) -> AsyncConnectionPool:
    """
    Initialize the global connection pool.

    Args:
        min_size: Minimum connections to maintain (defaults from config)
        max_size: Maximum connections allowed (defaults from config)
        connection_string: Override connection string (defaults to env)

    Returns:
        AsyncConnectionPool instance
    """
    global _pool

    if _pool is not None:
        logger.warning("Pool already initialized, returning existing pool")
        return _pool

    defaults = get_defaults().database
    min_size = defaults.min_size if min_size is None else min_size
    max_size = defaults.max_size if max_size is None else max_size
    conninfo = connection_string or get_connection_string()

    logger.info(f"Initializing connection pool: {_safe_conninfo(conninfo)}")

    _pool = AsyncConnectionPool(
        conninfo=conninfo,
        min_size=min_size,
        max_size=max_size,
        open=False,  # Opened explicitly below
    )

    await _pool.open()
    logger.info(f"Connection pool opened (min={min_size}, max={max_size})")

    return _pool


async def get_pool() -> AsyncConnectionPool:
    """Get the global connection pool, initializing if needed."""
    if _pool is None:
        await init_pool()
    return _pool


async def close_pool() -> None:
    """Close the global connection pool."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Connection pool closed")


class DatabasePool:
    """
    Context manager for pool lifecycle.

    Usage:
        async with DatabasePool() as pool:
            client = AsyncPostgreSQLClient(pool)
    """

    def __init__(
        self,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
        connection_string: Optional[str] = None,
    ):
        self.min_size = min_size
        self.max_size = max_size
        self.connection_string = connection_string

    async def __aenter__(self) -> AsyncConnectionPool:
        return await init_pool(
            min_size=self.min_size,
            max_size=self.max_size,
            connection_string=self.connection_string,
        )

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await close_pool()


__all__ = [
    "DatabaseClient",
    "AsyncPostgreSQLClient",
    "get_connection_string",
    "init_pool",
    "get_pool",
    "close_pool",
    "DatabasePool",
]
