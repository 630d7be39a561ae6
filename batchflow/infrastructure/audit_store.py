"""
PostgreSQL-backed audit trail store.

Lives in its own schema (the audit "keyspace"). ``batch_objects`` is the
current state of each batch, used to resolve item parents; ``audit_entries``
is append-only and read newest-first per object or per parent.
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Dict, List, Optional

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from batchflow.domain.models import AuditEntry, ObjectPayload
from batchflow.errors import StoreUnavailableError
from batchflow.infrastructure.db_factory import PoolManager
from batchflow.utils.logging import get_logger

log = get_logger(__name__)

_SCHEMA_STATEMENTS = (
    "CREATE SCHEMA IF NOT EXISTS {schema}",
    """
    CREATE TABLE IF NOT EXISTS {schema}.batch_objects (
        object_id   TEXT PRIMARY KEY,
        object_type TEXT NOT NULL,
        status      TEXT NOT NULL,
        outcome     TEXT NOT NULL,
        metadata    JSONB NOT NULL DEFAULT '{{}}'::jsonb,
        created     TIMESTAMPTZ NOT NULL,
        updated     TIMESTAMPTZ NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS {schema}.audit_entries (
        audit_id         UUID NOT NULL,
        object_id        TEXT NOT NULL,
        object_type      TEXT NOT NULL,
        parent_id        TEXT NOT NULL,
        parent_type      TEXT NOT NULL,
        action           TEXT NOT NULL,
        previous_status  TEXT,
        new_status       TEXT NOT NULL,
        previous_outcome TEXT,
        new_outcome      TEXT NOT NULL,
        timestamp        TIMESTAMPTZ NOT NULL,
        metadata         TEXT,
        PRIMARY KEY (object_type, object_id, timestamp, audit_id)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_audit_object_recent
        ON {schema}.audit_entries (object_type, object_id, timestamp DESC)
    """,
    "CREATE INDEX IF NOT EXISTS idx_audit_parent_id ON {schema}.audit_entries (parent_id)",
)

_AUDIT_COLUMNS = (
    "audit_id, object_id, object_type, parent_id, parent_type, action, "
    "previous_status, new_status, previous_outcome, new_outcome, timestamp, metadata"
)


class PostgresAuditStore:
    """
    Audit trail store on a psycopg ConnectionPool.

    Parameters
    ----------
    dsn : str
        Connection target for the audit database.
    schema : str
        Schema that holds the audit tables.
    pool : ConnectionPool, optional
        Pre-built pool (tests); otherwise one is obtained from PoolManager.
    """

    def __init__(self, dsn: str, schema: str = "paydash", pool: Optional[ConnectionPool] = None) -> None:
        self.dsn = dsn
        self.schema = schema
        self._pool = pool
        self._owns_pool = pool is None
        self._schema_id = sql.Identifier(schema)

    def _q(self, template: str) -> sql.Composed:
        return sql.SQL(template).format(schema=self._schema_id)

    def _get_pool(self) -> ConnectionPool:
        if self._pool is None:
            raise RuntimeError("audit store is not open")
        return self._pool

    def open(self) -> None:
        if self._pool is None:
            try:
                self._pool = PoolManager().get_pool(self.dsn)
            except psycopg.Error as exc:
                raise StoreUnavailableError(f"Audit store unreachable: {exc}") from exc
        self.ensure_schema()

    def ensure_schema(self) -> None:
        """Create the schema, tables and indexes if they do not exist yet."""
        with self._get_pool().connection() as conn:
            with conn.cursor() as cur:
                for statement in _SCHEMA_STATEMENTS:
                    cur.execute(self._q(statement))
        log.info(f"Audit schema {self.schema} and tables created/verified")

    def upsert_batch_object(self, payload: ObjectPayload) -> None:
        query = self._q(
            """
            INSERT INTO {schema}.batch_objects
                (object_id, object_type, status, outcome, metadata, created, updated)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (object_id) DO UPDATE SET
                object_type = EXCLUDED.object_type,
                status      = EXCLUDED.status,
                outcome     = EXCLUDED.outcome,
                metadata    = EXCLUDED.metadata,
                created     = EXCLUDED.created,
                updated     = EXCLUDED.updated
            """
        )
        with self._get_pool().connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    query,
                    (
                        payload.object_id,
                        payload.object_type.value,
                        payload.status.value,
                        payload.outcome.value,
                        json.dumps(payload.metadata),
                        payload.created,
                        payload.updated,
                    ),
                )

    def batch_exists(self, object_id: str) -> bool:
        query = self._q("SELECT 1 FROM {schema}.batch_objects WHERE object_id = %s LIMIT 1")
        with self._get_pool().connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, (object_id,))
                return cur.fetchone() is not None

    def insert_entry(self, entry: AuditEntry) -> None:
        query = self._q(
            "INSERT INTO {schema}.audit_entries (" + _AUDIT_COLUMNS + ") "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)"
        )
        with self._get_pool().connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    query,
                    (
                        uuid.UUID(entry.audit_id),
                        entry.object_id,
                        entry.object_type.value,
                        entry.parent_id,
                        entry.parent_type,
                        entry.action,
                        entry.previous_status,
                        entry.new_status.value,
                        entry.previous_outcome,
                        entry.new_outcome.value,
                        entry.timestamp,
                        json.dumps(entry.metadata, sort_keys=True),
                    ),
                )

    def _select_entries(self, where: str, params: tuple) -> List[Dict[str, Any]]:
        query = self._q(
            "SELECT " + _AUDIT_COLUMNS + " FROM {schema}.audit_entries "
            + where
            + " ORDER BY timestamp DESC LIMIT %s"
        )
        with self._get_pool().connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                rows = cur.fetchall()
        for row in rows:
            row["audit_id"] = str(row["audit_id"])
            row["metadata"] = json.loads(row["metadata"]) if row["metadata"] else {}
        return rows

    def entries_for_object(self, object_type: str, object_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        return self._select_entries(
            "WHERE object_type = %s AND object_id = %s", (object_type, object_id, limit)
        )

    def entries_for_parent(self, parent_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        return self._select_entries("WHERE parent_id = %s", (parent_id, limit))

    def recent_entries(self, limit: int = 100) -> List[Dict[str, Any]]:
        return self._select_entries("", (limit,))

    def batch_object(self, object_id: str) -> Optional[Dict[str, Any]]:
        query = self._q("SELECT * FROM {schema}.batch_objects WHERE object_id = %s")
        with self._get_pool().connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, (object_id,))
                return cur.fetchone()

    def close(self) -> None:
        if self._pool is not None and self._owns_pool:
            PoolManager().release(self.dsn)
        self._pool = None


__all__ = ["PostgresAuditStore"]
