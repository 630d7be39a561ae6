"""
PostgreSQL-backed work-queue store.

``queue_objects`` holds one flat row per batch (the snapshot hash) and
``queue_index`` holds the ingestion-time score used to page the most recently
touched batches. Both writes are upserts, so replays converge.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from batchflow.errors import StoreUnavailableError
from batchflow.infrastructure.db_factory import PoolManager
from batchflow.utils.logging import get_logger

log = get_logger(__name__)

SCHEMA_DDL = (
    """
    CREATE TABLE IF NOT EXISTS queue_objects (
        object_id   TEXT PRIMARY KEY,
        object_type TEXT NOT NULL,
        status      TEXT NOT NULL,
        outcome     TEXT NOT NULL DEFAULT '',
        created     TIMESTAMPTZ NOT NULL,
        updated     TIMESTAMPTZ NOT NULL,
        records     INTEGER NOT NULL DEFAULT 0,
        metadata    TEXT NOT NULL DEFAULT '{}'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS queue_index (
        object_id TEXT PRIMARY KEY,
        score     DOUBLE PRECISION NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_queue_index_score ON queue_index (score DESC)",
)

UPSERT_OBJECT_SQL = """
    INSERT INTO queue_objects
        (object_id, object_type, status, outcome, created, updated, records, metadata)
    VALUES (%(object_id)s, %(object_type)s, %(status)s, %(outcome)s,
            %(created)s, %(updated)s, %(records)s, %(metadata)s)
    ON CONFLICT (object_id) DO UPDATE SET
        object_type = EXCLUDED.object_type,
        status      = EXCLUDED.status,
        outcome     = EXCLUDED.outcome,
        created     = EXCLUDED.created,
        updated     = EXCLUDED.updated,
        records     = EXCLUDED.records,
        metadata    = EXCLUDED.metadata
"""

UPSERT_INDEX_SQL = """
    INSERT INTO queue_index (object_id, score) VALUES (%s, %s)
    ON CONFLICT (object_id) DO UPDATE SET score = EXCLUDED.score
"""

RECENT_SQL = """
    SELECT o.object_id, o.object_type, o.status, o.outcome, o.created, o.updated,
           o.records, o.metadata, i.score
    FROM queue_index i
    JOIN queue_objects o ON o.object_id = i.object_id
    ORDER BY i.score DESC
    LIMIT %s
"""


class PostgresWorkQueueStore:
    """
    Work-queue store on a psycopg ConnectionPool.

    Parameters
    ----------
    dsn : str
        Connection target for the work-queue database.
    pool : ConnectionPool, optional
        Pre-built pool (tests); otherwise one is obtained from PoolManager.
    """

    def __init__(self, dsn: str, pool: Optional[ConnectionPool] = None) -> None:
        self.dsn = dsn
        self._pool = pool
        self._owns_pool = pool is None

    def open(self) -> None:
        if self._pool is None:
            try:
                self._pool = PoolManager().get_pool(self.dsn)
            except psycopg.Error as exc:
                raise StoreUnavailableError(f"Work-queue store unreachable: {exc}") from exc
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                for statement in SCHEMA_DDL:
                    cur.execute(statement)
        log.info("Work-queue schema created/verified")

    def _get_pool(self) -> ConnectionPool:
        if self._pool is None:
            raise RuntimeError("work-queue store is not open")
        return self._pool

    def upsert(self, snapshot: Dict[str, Any], score: float) -> None:
        """Write the snapshot row and its index score in one transaction."""
        with self._get_pool().connection() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute(UPSERT_OBJECT_SQL, snapshot)
                    cur.execute(UPSERT_INDEX_SQL, (snapshot["object_id"], score))

    def get(self, object_id: str) -> Optional[Dict[str, Any]]:
        with self._get_pool().connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute("SELECT * FROM queue_objects WHERE object_id = %s", (object_id,))
                return cur.fetchone()

    def recent(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Most recently touched batches first."""
        with self._get_pool().connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(RECENT_SQL, (limit,))
                rows = cur.fetchall()
        for row in rows:
            row["metadata"] = json.loads(row["metadata"] or "{}")
        return rows

    def stats(self) -> Dict[str, Any]:
        with self._get_pool().connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT status, COUNT(*) FROM queue_objects GROUP BY status")
                by_status = {status: count for status, count in cur.fetchall()}
                cur.execute(
                    "SELECT outcome, COUNT(*) FROM queue_objects "
                    "WHERE outcome <> '' GROUP BY outcome"
                )
                by_outcome = {outcome: count for outcome, count in cur.fetchall()}
                cur.execute("SELECT COUNT(*), COALESCE(SUM(records), 0) FROM queue_objects")
                total, total_records = cur.fetchone()
        return {
            "total": total,
            "by_status": by_status,
            "by_outcome": by_outcome,
            "total_records": int(total_records),
        }

    def clear(self) -> None:
        with self._get_pool().connection() as conn:
            with conn.cursor() as cur:
                cur.execute("TRUNCATE queue_index, queue_objects")
        log.info("Work queue cleared")

    def close(self) -> None:
        if self._pool is not None and self._owns_pool:
            PoolManager().release(self.dsn)
        self._pool = None


__all__ = ["PostgresWorkQueueStore"]
