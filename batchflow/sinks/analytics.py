"""
Analytics buffer sink: terminal item events projected into MetricsEvents and
written to the columnar store in batches.

Flow per event:
    filter (item + COMPLETE/INVALID) -> project -> append to buffer under lock

Flushes are triggered when the buffer reaches ``batch_size`` or by a periodic
check once ``flush_interval`` has elapsed since the last flush. A flush takes
a snapshot of the buffer and clears it under the lock, then writes on a
background worker so the dispatcher never waits on storage. ``close`` drains
whatever is left synchronously before releasing the store.
"""

from __future__ import annotations

import re
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Set

from batchflow.config import get_settings
from batchflow.domain.models import LifecycleEvent, MetricsEvent, ObjectType
from batchflow.generator.scheduler import PeriodicTask
from batchflow.sinks.abstract import AbstractEventSink
from batchflow.utils.logging import get_logger

log = get_logger(__name__)

_NON_AMOUNT_CHARS = re.compile(r"[^\d.]")
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


class AnalyticsStore(Protocol):
    def open(self) -> None: ...

    def write_batch(self, events: Sequence[MetricsEvent]) -> int: ...

    def close(self) -> None: ...


def is_completion_event(event: LifecycleEvent) -> bool:
    """Item events in a terminal status (COMPLETE or INVALID)."""
    payload = event.payload
    return payload.object_type is ObjectType.ITEM and payload.status.is_terminal


def extract_company_name(metadata: Dict[str, str]) -> Optional[str]:
    """summary -> company -> company_name -> "Company <company_id>" -> None."""
    for key in ("summary", "company", "company_name"):
        value = (metadata.get(key) or "").strip()
        if value:
            return value
    company_id = metadata.get("company_id")
    return f"Company {company_id}" if company_id else None


def parse_amount(raw: Optional[str]) -> Decimal:
    """Lenient amount parsing; anything unparseable counts as zero."""
    if raw is None or not raw.strip():
        return Decimal("0")
    try:
        return Decimal(_NON_AMOUNT_CHARS.sub("", raw))
    except InvalidOperation:
        log.warning(f"Failed to parse amount: {raw}")
        return Decimal("0")


def project_metrics_event(
    event: LifecycleEvent, completed_at: Optional[datetime] = None
) -> MetricsEvent:
    payload = event.payload
    metadata = payload.metadata

    company_name = extract_company_name(metadata)
    company_id = metadata.get("company_id")
    if not company_id and company_name:
        company_id = _NON_ALNUM.sub("", company_name).lower() or None

    processing_ms = int((payload.updated - payload.created).total_seconds() * 1000)

    return MetricsEvent(
        event_id=str(uuid.uuid4()),
        audit_id=payload.object_id,
        batch_id=metadata.get("batch_id") or metadata.get("parent_id"),
        company_id=company_id or "UNKNOWN",
        company_name=company_name or "Unknown Company",
        amount=parse_amount(metadata.get("amount")),
        status=payload.status,
        outcome=payload.outcome,
        completed_at=completed_at or datetime.now(timezone.utc),
        processing_time_ms=max(processing_ms, 0),
    )


class AnalyticsBufferSink(AbstractEventSink):
    """
    Parameters
    ----------
    store : AnalyticsStore
        Columnar store receiving flushed batches.
    batch_size : int, optional
        Buffer size that triggers an immediate asynchronous flush.
    flush_interval : float, optional
        Seconds between periodic flush checks; also the minimum age of the
        last flush before a periodic flush fires.
    stats_interval : float, optional
        Seconds between counter log lines.
    shutdown_timeout : float, optional
        Bound on waiting for in-flight background writes during ``close``.
    start_timers : bool
        Start the periodic flush and stats tasks in ``open``.
    """

    name = "analytics"

    def __init__(
        self,
        store: AnalyticsStore,
        batch_size: Optional[int] = None,
        flush_interval: Optional[float] = None,
        stats_interval: Optional[float] = None,
        shutdown_timeout: Optional[float] = None,
        start_timers: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = get_settings()
        self.store = store
        self.batch_size = batch_size or settings.analytics_batch_size
        self.flush_interval = flush_interval or settings.analytics_flush_interval_seconds
        self.stats_interval = stats_interval or settings.analytics_stats_interval_seconds
        self.shutdown_timeout = (
            settings.analytics_shutdown_timeout_seconds
            if shutdown_timeout is None
            else shutdown_timeout
        )
        self.start_timers = start_timers
        self.clock = clock

        self._buffer: List[MetricsEvent] = []
        self._buffer_lock = threading.Lock()
        self._counter_lock = threading.Lock()
        self._last_flush = clock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()
        self._tasks: List[PeriodicTask] = []

        self.events_received = 0
        self.events_dropped = 0
        self.events_written = 0
        self.write_errors = 0
        self.flushes = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        self.store.open()
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="analytics-flush")
        self._last_flush = self.clock()
        if self.start_timers:
            self._tasks = [
                PeriodicTask("analytics-flush-check", self.flush_interval, self.flush_if_due),
                PeriodicTask("analytics-stats", self.stats_interval, self.log_stats),
            ]
            for task in self._tasks:
                task.start()
        log.info(
            f"AnalyticsBufferSink initialized successfully with batch size {self.batch_size} "
            f"and flush interval {self.flush_interval}s"
        )

    def close(self) -> None:
        log.info("Closing analytics sink...")
        for task in self._tasks:
            task.stop(timeout=self.shutdown_timeout)
        self._tasks = []

        remaining = self._drain()
        if remaining:
            self._write(remaining)
            log.info(f"Flushed {len(remaining)} remaining events during close")

        if self._executor is not None:
            with self._pending_lock:
                pending = list(self._pending)
            _, not_done = wait(pending, timeout=self.shutdown_timeout)
            if not_done:
                log.warning(
                    f"{len(not_done)} background flushes still running after "
                    f"{self.shutdown_timeout}s; forcing shutdown"
                )
                self._executor.shutdown(wait=False, cancel_futures=True)
            else:
                self._executor.shutdown(wait=True)
            self._executor = None

        self.log_stats()
        self.store.close()
        log.info("AnalyticsBufferSink closed")

    # ------------------------------------------------------------------
    # Event path
    # ------------------------------------------------------------------

    def handle(self, event: LifecycleEvent) -> None:
        self._bump("events_received")
        if not is_completion_event(event):
            self._bump("events_dropped")
            return

        metrics_event = project_metrics_event(event)
        with self._buffer_lock:
            self._buffer.append(metrics_event)
            full = len(self._buffer) >= self.batch_size
        if full:
            self.flush_async()

    def buffered(self) -> int:
        with self._buffer_lock:
            return len(self._buffer)

    # ------------------------------------------------------------------
    # Flushing
    # ------------------------------------------------------------------

    def _drain(self) -> List[MetricsEvent]:
        with self._buffer_lock:
            batch = self._buffer
            self._buffer = []
            if batch:
                self._last_flush = self.clock()
            return batch

    def flush_if_due(self) -> Optional[Future]:
        with self._buffer_lock:
            due = bool(self._buffer) and self.clock() - self._last_flush >= self.flush_interval
        return self.flush_async() if due else None

    def flush_async(self) -> Optional[Future]:
        """Snapshot-and-clear the buffer and write it on a background worker."""
        if self._executor is None:
            raise RuntimeError("analytics sink is not open")
        batch = self._drain()
        if not batch:
            return None
        future = self._executor.submit(self._write, batch)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _write(self, batch: List[MetricsEvent]) -> None:
        try:
            written = self.store.write_batch(batch)
        except Exception:  # noqa: BLE001 - write failures are counted, not propagated
            log.exception(
                f"Failed to write {len(batch)} events to analytics store",
                extra={"sink": self.name},
            )
            self._bump("write_errors", len(batch))
            return
        self._bump("events_written", written)
        self._bump("flushes")
        log.debug(f"Successfully wrote {written} events to analytics store")

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    def _bump(self, counter: str, amount: int = 1) -> None:
        with self._counter_lock:
            setattr(self, counter, getattr(self, counter) + amount)

    def stats(self) -> Dict[str, int]:
        with self._counter_lock:
            counters = {
                "received": self.events_received,
                "dropped": self.events_dropped,
                "written": self.events_written,
                "errors": self.write_errors,
                "flushes": self.flushes,
            }
        counters["buffer"] = self.buffered()
        return counters

    def log_stats(self) -> None:
        stats = self.stats()
        log.info(
            f"Analytics Sink Stats - Received: {stats['received']}, Written: {stats['written']}, "
            f"Errors: {stats['errors']}, Buffer: {stats['buffer']}",
            extra={"sink": self.name, **stats},
        )


__all__ = [
    "AnalyticsBufferSink",
    "AnalyticsStore",
    "extract_company_name",
    "is_completion_event",
    "parse_amount",
    "project_metrics_event",
]
