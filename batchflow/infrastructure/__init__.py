"""
Infrastructure package for batchflow.

Connection management plus the concrete stores behind the three sinks.
"""

from batchflow.infrastructure.analytics_store import DuckDBAnalyticsStore
from batchflow.infrastructure.audit_store import PostgresAuditStore
from batchflow.infrastructure.db_factory import PoolManager, get_duckdb_connection, get_pool
from batchflow.infrastructure.work_queue_store import PostgresWorkQueueStore

__all__ = [
    "DuckDBAnalyticsStore",
    "PoolManager",
    "PostgresAuditStore",
    "PostgresWorkQueueStore",
    "get_duckdb_connection",
    "get_pool",
]
