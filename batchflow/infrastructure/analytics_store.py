"""
DuckDB-backed analytics store.

Columnar table ``audit_completions`` receives MetricsEvent batches from the
analytics buffer sink and answers the dashboard-style aggregate queries.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import duckdb

from batchflow.domain.models import MetricsEvent
from batchflow.errors import StoreUnavailableError
from batchflow.infrastructure.db_factory import get_duckdb_connection
from batchflow.utils.logging import get_logger

log = get_logger(__name__)

SCHEMA_DDL = """
    CREATE TABLE IF NOT EXISTS audit_completions (
        event_id           VARCHAR NOT NULL,
        audit_id           VARCHAR NOT NULL,
        batch_id           VARCHAR,
        company_id         VARCHAR NOT NULL,
        company_name       VARCHAR NOT NULL,
        amount             DECIMAL(18, 2) NOT NULL,
        status             VARCHAR NOT NULL,
        outcome            VARCHAR NOT NULL,
        completed_at       TIMESTAMP NOT NULL,
        processing_time_ms BIGINT NOT NULL
    )
"""

INSERT_SQL = """
    INSERT INTO audit_completions (
        event_id, audit_id, batch_id, company_id, company_name,
        amount, status, outcome, completed_at, processing_time_ms
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


def _row(event: MetricsEvent) -> tuple:
    return (
        event.event_id,
        event.audit_id,
        event.batch_id,
        event.company_id,
        event.company_name,
        event.amount,
        event.status.value,
        event.outcome.value,
        event.completed_at.replace(tzinfo=None),
        event.processing_time_ms,
    )


class DuckDBAnalyticsStore:
    """
    Analytics store on a single DuckDB connection.

    DuckDB connections are not safe for concurrent use, so every statement
    runs under one lock; flush workers and readers simply queue up.
    """

    def __init__(self, path: Path | str = ":memory:") -> None:
        self.path = str(path)
        self._conn: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.Lock()

    def open(self) -> None:
        try:
            self._conn = get_duckdb_connection(self.path)
        except duckdb.Error as exc:
            raise StoreUnavailableError(f"Analytics store unreachable: {exc}") from exc
        with self._lock:
            self._conn.execute(SCHEMA_DDL)
        log.info(f"Analytics store ready at {self.path}")

    def _get_conn(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise RuntimeError("analytics store is not open")
        return self._conn

    def write_batch(self, events: Sequence[MetricsEvent]) -> int:
        """Insert ``events`` in one transaction and return how many were written."""
        if not events:
            return 0
        conn = self._get_conn()
        with self._lock:
            conn.execute("BEGIN TRANSACTION")
            try:
                conn.executemany(INSERT_SQL, [_row(event) for event in events])
            except Exception:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        return len(events)

    def _fetch(self, query: str, params: Optional[list] = None) -> List[Dict[str, Any]]:
        conn = self._get_conn()
        with self._lock:
            cursor = conn.execute(query, params or [])
            columns = [column[0] for column in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def count(self) -> int:
        return int(self._fetch("SELECT count(*) AS total FROM audit_completions")[0]["total"])

    def summary(self) -> Dict[str, Any]:
        row = self._fetch(
            """
            SELECT
                count(*) AS total_events,
                coalesce(sum(amount), 0) AS total_amount,
                count(*) FILTER (WHERE outcome = 'SUCCESS') AS success_events,
                count(*) FILTER (WHERE outcome = 'FAILURE') AS failure_events
            FROM audit_completions
            """
        )[0]
        total = int(row["total_events"])
        success = int(row["success_events"])
        total_amount = float(row["total_amount"])
        return {
            "total_events": total,
            "total_amount": round(total_amount, 2),
            "success_events": success,
            "failure_events": int(row["failure_events"]),
            "success_rate": round(success * 100.0 / total, 2) if total else 0.0,
            "avg_amount_per_event": round(total_amount / total, 2) if total else 0.0,
        }

    def company_breakdown(self) -> List[Dict[str, Any]]:
        rows = self._fetch(
            """
            SELECT
                company_id,
                company_name,
                count(*) AS total_events,
                sum(amount) AS total_amount,
                count(*) FILTER (WHERE outcome = 'SUCCESS') AS success_events,
                count(*) FILTER (WHERE outcome = 'FAILURE') AS failure_events
            FROM audit_completions
            GROUP BY company_id, company_name
            ORDER BY total_amount DESC
            """
        )
        for row in rows:
            row["total_amount"] = float(row["total_amount"])
            row["success_rate"] = (
                round(row["success_events"] * 100.0 / row["total_events"], 2)
                if row["total_events"]
                else 0.0
            )
        return rows

    def recent_events(self, limit: int = 50) -> List[Dict[str, Any]]:
        return self._fetch(
            """
            SELECT event_id, audit_id, company_name, amount, status, outcome,
                   completed_at, processing_time_ms
            FROM audit_completions
            ORDER BY completed_at DESC
            LIMIT ?
            """,
            [limit],
        )

    def performance(self) -> Dict[str, Any]:
        row = self._fetch(
            """
            SELECT
                avg(processing_time_ms) AS avg_processing_time,
                min(processing_time_ms) AS min_processing_time,
                max(processing_time_ms) AS max_processing_time,
                quantile_cont(processing_time_ms, 0.95) AS percentile_95,
                count(*) AS total_processed
            FROM audit_completions
            """
        )[0]
        return {key: float(value or 0) for key, value in row.items()}

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


__all__ = ["DuckDBAnalyticsStore"]
