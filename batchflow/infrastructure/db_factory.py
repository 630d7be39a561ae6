"""
Connection factory utilities for batchflow stores.

Provides centralized management of the PostgreSQL pools used by the work-queue
and audit-trail stores and of DuckDB connections for the analytics store. The
PoolManager singleton keys pools by DSN so each store target gets its own pool,
and ensures they are cleaned up on application exit.

Includes retry logic for transient connection failures using tenacity.
"""

from __future__ import annotations

import atexit
import threading
from pathlib import Path
from typing import Dict, Optional

import duckdb
import psycopg
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from batchflow.config import get_settings
from batchflow.utils.logging import get_logger

log = get_logger(__name__)

POOL_OPEN_TIMEOUT_SECONDS = 10.0


class PoolManager:
    """
    Thread-safe singleton for managing database connection pools.

    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._pools: Dict[str, ConnectionPool] = {}
                # Register cleanup on exit
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_pool(
        self, dsn: str, min_size: Optional[int] = None, max_size: Optional[int] = None
    ) -> ConnectionPool:
        """
        Get or create the pool for ``dsn``.

        The pool is opened and waits for ``min_size`` connections, so an
        unreachable server fails here rather than on first use.
        """
        settings = get_settings()
        with self._lock:
            pool = self._pools.get(dsn)
            if pool is None:
                pool = open_pool(
                    dsn,
                    min_size=min_size or settings.db_pool_min_size,
                    max_size=max_size or settings.db_pool_max_size,
                )
                self._pools[dsn] = pool
            return pool

    def release(self, dsn: str) -> None:
        """Close and forget the pool for ``dsn`` if one exists."""
        with self._lock:
            pool = self._pools.pop(dsn, None)
        if pool is not None:
            pool.close()

    def close_all(self) -> None:
        """
        Close all managed pools and release resources.

        This is called automatically on exit via atexit hook.
        """
        with self._lock:
            pools = list(self._pools.values())
            self._pools.clear()
        for pool in pools:
            try:
                pool.close()
            except Exception:  # noqa: BLE001 - best-effort cleanup at exit
                log.warning("Failed to close connection pool", exc_info=True)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def open_pool(dsn: str, min_size: int = 1, max_size: int = 10) -> ConnectionPool:
    """
    Open a synchronous connection pool with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection
    errors (``PoolTimeout`` is an ``OperationalError``).

    Raises
    ------
    psycopg.OperationalError
        If the pool cannot fill after all retry attempts.
    """
    pool = ConnectionPool(conninfo=dsn, min_size=min_size, max_size=max_size, open=False)
    try:
        pool.open(wait=True, timeout=POOL_OPEN_TIMEOUT_SECONDS)
    except Exception:
        pool.close()
        raise
    return pool


def get_pool(dsn: str, min_size: Optional[int] = None, max_size: Optional[int] = None) -> ConnectionPool:
    """Get or create the managed pool for ``dsn`` via PoolManager."""
    return PoolManager().get_pool(dsn, min_size=min_size, max_size=max_size)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((duckdb.IOException,)),
    reraise=True,
)
def get_duckdb_connection(path: Path | str) -> duckdb.DuckDBPyConnection:
    """
    Open the DuckDB database file at ``path`` (``:memory:`` for an in-memory one).

    Retries while another process holds the file lock.
    """
    target = str(path)
    if target != ":memory:":
        Path(target).parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(target)


__all__ = [
    "PoolManager",
    "get_duckdb_connection",
    "get_pool",
    "open_pool",
]
