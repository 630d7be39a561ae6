"""
Pytest configuration for batchflow.

Provides fixtures for:
- Settings with test-friendly intervals
- A seeded RNG for reproducible generator runs
- In-memory fakes for the three sink stores and the event publisher
- Factories for batch/item payloads and lifecycle events
"""

from __future__ import annotations

import os
import random
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

from batchflow.config import Settings
from batchflow.domain.models import (
    AuditEntry,
    EventType,
    LifecycleEvent,
    MetricsEvent,
    ObjectPayload,
    ObjectType,
    Outcome,
    Status,
)

DEFAULT_SEED = 1234
BASE_TIME = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        queue_db_host=os.getenv("QUEUE_DB_HOST", "localhost"),
        queue_db_port=int(os.getenv("QUEUE_DB_PORT", "5432")),
        queue_db_name=os.getenv("QUEUE_DB_NAME", "batchflow_queue"),
        audit_db_host=os.getenv("AUDIT_DB_HOST", "localhost"),
        audit_db_port=int(os.getenv("AUDIT_DB_PORT", "5432")),
        audit_db_name=os.getenv("AUDIT_DB_NAME", "batchflow_audit"),
        audit_schema=os.getenv("AUDIT_SCHEMA", "batchflow_test"),
        analytics_db_path=":memory:",
        analytics_batch_size=3,
        analytics_flush_interval_seconds=0.05,
        analytics_stats_interval_seconds=60.0,
        analytics_shutdown_timeout_seconds=2.0,
        batch_creation_interval_seconds=0.05,
        batch_update_interval_seconds=0.02,
        poll_timeout_seconds=0.05,
        log_level="DEBUG",
    )


@pytest.fixture
def rng() -> random.Random:
    return random.Random(DEFAULT_SEED)


# ----------------------------------------------------------------------
# Fakes
# ----------------------------------------------------------------------


class RecordingPublisher:
    """Publisher that keeps every event in memory."""

    def __init__(self) -> None:
        self.events: List[LifecycleEvent] = []

    def publish(self, event: LifecycleEvent) -> None:
        self.events.append(event)

    def publish_many(self, events) -> None:
        self.events.extend(events)

    def of_type(self, event_type: EventType) -> List[LifecycleEvent]:
        return [event for event in self.events if event.event_type is event_type]


class FakeWorkQueueStore:
    def __init__(self) -> None:
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.index: Dict[str, float] = {}
        self.opened = False
        self.closed = False

    def open(self) -> None:
        self.opened = True

    def upsert(self, snapshot: Dict[str, Any], score: float) -> None:
        self.objects[snapshot["object_id"]] = dict(snapshot)
        self.index[snapshot["object_id"]] = score

    def close(self) -> None:
        self.closed = True


class FakeAuditStore:
    def __init__(self) -> None:
        self.batches: Dict[str, ObjectPayload] = {}
        self.entries: List[AuditEntry] = []
        self.opened = False
        self.closed = False

    def open(self) -> None:
        self.opened = True

    def upsert_batch_object(self, payload: ObjectPayload) -> None:
        self.batches[payload.object_id] = payload

    def batch_exists(self, object_id: str) -> bool:
        return object_id in self.batches

    def insert_entry(self, entry: AuditEntry) -> None:
        self.entries.append(entry)

    def close(self) -> None:
        self.closed = True


class FakeAnalyticsStore:
    """Thread-safe fake; ``fail_writes`` makes every write raise."""

    def __init__(self, fail_writes: bool = False) -> None:
        self.batches: List[List[MetricsEvent]] = []
        self.fail_writes = fail_writes
        self.opened = False
        self.closed = False
        self._lock = threading.Lock()

    def open(self) -> None:
        self.opened = True

    def write_batch(self, events) -> int:
        if self.fail_writes:
            raise RuntimeError("analytics store unavailable")
        with self._lock:
            self.batches.append(list(events))
        return len(events)

    @property
    def rows(self) -> List[MetricsEvent]:
        with self._lock:
            return [event for batch in self.batches for event in batch]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def work_queue_store() -> FakeWorkQueueStore:
    return FakeWorkQueueStore()


@pytest.fixture
def audit_store() -> FakeAuditStore:
    return FakeAuditStore()


@pytest.fixture
def analytics_store() -> FakeAnalyticsStore:
    return FakeAnalyticsStore()


# ----------------------------------------------------------------------
# Payload / event factories
# ----------------------------------------------------------------------


def _batch_metadata(**overrides: str) -> Dict[str, str]:
    metadata = {
        "records": "3",
        "source": "automated",
        "batch": "17",
        "priority": "high",
        "summary": "Verizon Communications",
        "region": "US",
        "currency": "USD",
        "amount": "150.01",
        "formatted_amount": "$150.01",
    }
    metadata.update(overrides)
    return metadata


@pytest.fixture
def make_batch() -> Callable[..., ObjectPayload]:
    def _make(
        object_id: str = "batch-1",
        status: Status = Status.RECEIVED,
        outcome: Outcome = Outcome.PENDING,
        metadata: Optional[Dict[str, str]] = None,
        created: datetime = BASE_TIME,
        updated: Optional[datetime] = None,
    ) -> ObjectPayload:
        return ObjectPayload(
            object_id=object_id,
            object_type=ObjectType.BATCH,
            status=status,
            outcome=outcome,
            metadata=metadata if metadata is not None else _batch_metadata(),
            created=created,
            updated=updated or created,
        )

    return _make


@pytest.fixture
def make_item_event() -> Callable[..., LifecycleEvent]:
    def _make(
        object_id: str = "batch-1-0001",
        parent_id: Optional[str] = "batch-1",
        status: Status = Status.COMPLETE,
        outcome: Outcome = Outcome.SUCCESS,
        metadata: Optional[Dict[str, str]] = None,
        processing_seconds: int = 90,
        event_type: EventType = EventType.ITEM_UPDATED,
    ) -> LifecycleEvent:
        if metadata is None:
            metadata = _batch_metadata(records="1", amount="50.01", formatted_amount="$50.01")
            metadata["company"] = metadata["summary"]
            if parent_id is not None:
                metadata["parent_id"] = parent_id
                metadata["parent_type"] = "batch"
        updated = BASE_TIME + timedelta(seconds=processing_seconds)
        payload = ObjectPayload(
            object_id=object_id,
            object_type=ObjectType.ITEM,
            status=status,
            outcome=outcome,
            metadata=metadata,
            created=BASE_TIME,
            updated=updated,
        )
        return LifecycleEvent(event_type=event_type, timestamp=updated, payload=payload)

    return _make


@pytest.fixture
def make_batch_event(make_batch) -> Callable[..., LifecycleEvent]:
    def _make(event_type: EventType = EventType.OBJECT_CREATED, **kwargs: Any) -> LifecycleEvent:
        payload = make_batch(**kwargs)
        return LifecycleEvent(event_type=event_type, timestamp=payload.updated, payload=payload)

    return _make
