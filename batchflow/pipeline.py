"""
In-process pipeline: generator ticks -> stream -> dispatcher -> sinks.

Usage (example from CLI):
    from batchflow.pipeline import run_pipeline

    summary = run_pipeline(duration=120)
    print(summary["dispatcher"])

Run summaries are saved to `results/` by default:
- `results/latest.json` (last run)
- `results/run-<timestamp>.json` (timestamped archive)
"""

from __future__ import annotations

import json
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from batchflow.config import Settings, get_settings
from batchflow.dispatcher import FanOutDispatcher
from batchflow.generator.scheduler import PeriodicTask
from batchflow.generator.service import BatchEventGenerator
from batchflow.infrastructure.analytics_store import DuckDBAnalyticsStore
from batchflow.infrastructure.audit_store import PostgresAuditStore
from batchflow.infrastructure.work_queue_store import PostgresWorkQueueStore
from batchflow.sinks.abstract import EventSink
from batchflow.sinks.analytics import AnalyticsBufferSink
from batchflow.sinks.audit_trail import AuditTrailSink
from batchflow.sinks.work_queue import WorkQueueSink
from batchflow.stream.jsonlines import JsonLinesEventStream
from batchflow.stream.memory import InMemoryEventStream
from batchflow.utils.logging import get_logger

log = get_logger(__name__)


def build_sinks(settings: Optional[Settings] = None) -> List[EventSink]:
    """Work queue, audit trail and analytics sinks in dispatch order."""
    settings = settings or get_settings()
    return [
        WorkQueueSink(PostgresWorkQueueStore(settings.queue_dsn)),
        AuditTrailSink(PostgresAuditStore(settings.audit_dsn, schema=settings.audit_schema)),
        AnalyticsBufferSink(
            DuckDBAnalyticsStore(settings.analytics_db_path),
            batch_size=settings.analytics_batch_size,
            flush_interval=settings.analytics_flush_interval_seconds,
            stats_interval=settings.analytics_stats_interval_seconds,
            shutdown_timeout=settings.analytics_shutdown_timeout_seconds,
        ),
    ]


def open_sinks(sinks: Sequence[EventSink]) -> None:
    """
    Open every sink, or none.

    A sink that fails to open closes the ones already opened and the error is
    re-raised to the caller.
    """
    opened: List[EventSink] = []
    for sink in sinks:
        try:
            sink.open()
        except Exception:
            log.exception(f"Failed to open sink {sink.name}", extra={"sink": sink.name})
            close_sinks(opened)
            raise
        opened.append(sink)


def close_sinks(sinks: Sequence[EventSink]) -> None:
    for sink in sinks:
        try:
            sink.close()
        except Exception:  # noqa: BLE001 - remaining sinks must still be closed
            log.exception(f"Failed to close sink {sink.name}", extra={"sink": sink.name})


def _sink_stats(sinks: Sequence[EventSink]) -> Dict[str, Dict[str, int]]:
    return {sink.name: dict(getattr(sink, "stats", dict)()) for sink in sinks}


def _persist_summary(payload: dict, results_dir: Path) -> None:
    results_dir.mkdir(parents=True, exist_ok=True)
    latest_path = results_dir / "latest.json"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    archive_path = results_dir / f"run-{timestamp}.json"

    for path in (latest_path, archive_path):
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True, default=str)

    log.info("Run summary persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})


def run_pipeline(
    duration: Optional[float] = None,
    sinks: Optional[Sequence[EventSink]] = None,
    generator: Optional[BatchEventGenerator] = None,
    stream: Optional[InMemoryEventStream] = None,
    settings: Optional[Settings] = None,
    stop_event: Optional[threading.Event] = None,
    results_dir: Path | str = "results",
    persist: bool = True,
) -> Dict[str, Any]:
    """
    Run generator and dispatcher in-process until ``duration`` elapses or
    ``stop_event`` is set.

    Parameters
    ----------
    duration : float | None
        Seconds to run. None runs until ``stop_event`` is set or the process
        is interrupted.
    sinks : sequence[EventSink] | None
        Sinks to feed. Defaults to ``build_sinks(settings)``.
    generator : BatchEventGenerator | None
        Must publish to ``stream`` when both are given.
    stream : InMemoryEventStream | None
        Transport between generator and dispatcher.
    stop_event : threading.Event | None
        External stop signal.
    results_dir : Path | str
        Directory for the JSON run summary.
    persist : bool
        Whether to write the summary to disk.

    Returns
    -------
    dict
        Published event count, dispatcher counters and per-sink counters.
    """
    settings = settings or get_settings()
    stream = stream or InMemoryEventStream()
    generator = generator or BatchEventGenerator(stream)
    sinks = list(sinks) if sinks is not None else build_sinks(settings)
    stop_event = stop_event or threading.Event()

    open_sinks(sinks)
    dispatcher = FanOutDispatcher(stream, sinks, poll_timeout=settings.poll_timeout_seconds)
    dispatcher_thread = threading.Thread(target=dispatcher.run, name="dispatcher", daemon=True)
    ticks = [
        PeriodicTask(
            "batch-create",
            settings.batch_creation_interval_seconds,
            generator.create_batch,
            initial_delay=0,
        ),
        PeriodicTask("batch-update", settings.batch_update_interval_seconds, generator.update_batch),
    ]

    started = time.monotonic()
    started_at = datetime.now(timezone.utc).isoformat()
    log.info(
        f"[PIPELINE START] sinks={', '.join(sink.name for sink in sinks)}",
        extra={"duration": duration},
    )
    dispatcher_thread.start()
    for task in ticks:
        task.start()

    try:
        stop_event.wait(duration)
    finally:
        for task in ticks:
            task.stop()
        dispatcher.stop()
        dispatcher_thread.join()
        drained = dispatcher.run_until_idle()
        log.info(f"Drained {drained} remaining records after stopping ticks")
        in_flight = generator.store.active_ids()
        if in_flight:
            log.info(
                f"{len(in_flight)} batches still in flight at shutdown",
                extra={"object_ids": in_flight},
            )
        close_sinks(sinks)
        stream.close()

    payload: Dict[str, Any] = {
        "started_at": started_at,
        "duration_seconds": round(time.monotonic() - started, 2),
        "events_published": stream.published,
        "active_batches": len(generator.store),
        "completed_batches": generator.store.evictions,
        "cached_metadata": len(generator.store.cached_ids()),
        "ticks": {task.name: task.runs for task in ticks},
        "dispatcher": dispatcher.stats(),
        "sinks": _sink_stats(sinks),
    }
    if persist:
        _persist_summary(payload, Path(results_dir))

    log.info("[PIPELINE COMPLETE]", extra={"events_published": payload["events_published"]})
    return payload


def replay_file(
    path: Path | str,
    sinks: Optional[Sequence[EventSink]] = None,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    """Feed a JSON-lines event file through the dispatcher into the sinks."""
    settings = settings or get_settings()
    sinks = list(sinks) if sinks is not None else build_sinks(settings)

    stream = JsonLinesEventStream(path)
    try:
        open_sinks(sinks)
        dispatcher = FanOutDispatcher(stream, sinks, poll_timeout=0)
        try:
            handled = dispatcher.run_until_idle()
        finally:
            close_sinks(sinks)
    finally:
        stream.close()

    log.info(f"Replayed {handled} records from {path}", extra={"path": str(path)})
    return {
        "path": str(path),
        "records": handled,
        "dispatcher": dispatcher.stats(),
        "sinks": _sink_stats(sinks),
    }


__all__ = ["build_sinks", "close_sinks", "open_sinks", "replay_file", "run_pipeline"]
