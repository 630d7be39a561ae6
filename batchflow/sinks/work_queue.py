"""
Work-queue sink: the live "what's in flight" view of batch objects.

Only batch events are stored. Each event upserts a flat snapshot of the batch
and bumps its score in the time-ordered index to the ingestion time.
"""

from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, Protocol

from batchflow.domain.models import LifecycleEvent, ObjectPayload, ObjectType
from batchflow.errors import SinkError
from batchflow.sinks.abstract import AbstractEventSink
from batchflow.utils.logging import get_logger

log = get_logger(__name__)


class WorkQueueStore(Protocol):
    def open(self) -> None: ...

    def upsert(self, snapshot: Dict[str, Any], score: float) -> None: ...

    def close(self) -> None: ...


def build_snapshot(payload: ObjectPayload) -> Dict[str, Any]:
    """Denormalized row for one batch; deterministic for a given payload."""
    metadata = payload.metadata
    return {
        "object_id": payload.object_id,
        "object_type": payload.object_type.value,
        "status": payload.status.value,
        "outcome": payload.outcome.value,
        "created": payload.created,
        "updated": payload.updated,
        "records": int(metadata.get("records", "0") or 0),
        "metadata": json.dumps(metadata, sort_keys=True),
    }


class WorkQueueSink(AbstractEventSink):
    name = "work_queue"

    def __init__(self, store: WorkQueueStore, clock: Callable[[], float] = time.time) -> None:
        self.store = store
        self.clock = clock
        self.stored = 0
        self.skipped = 0

    def open(self) -> None:
        self.store.open()
        log.info("WorkQueueSink initialized successfully")

    def handle(self, event: LifecycleEvent) -> None:
        payload = event.payload
        if payload.object_type is not ObjectType.BATCH:
            self.skipped += 1
            log.debug(
                f"Skipping non-batch object: {payload.object_id} "
                f"(type: {payload.object_type.value})"
            )
            return

        try:
            self.store.upsert(build_snapshot(payload), score=self.clock())
        except Exception as exc:
            raise SinkError(f"Failed to store batch object {payload.object_id} in work queue") from exc
        self.stored += 1
        log.debug(
            f"Stored batch object in work queue: {payload.object_id}",
            extra={"object_id": payload.object_id, "sink": self.name},
        )

    def close(self) -> None:
        self.store.close()
        log.info("WorkQueueSink closed")

    def stats(self) -> Dict[str, int]:
        return {"stored": self.stored, "skipped": self.skipped}


__all__ = ["WorkQueueSink", "WorkQueueStore", "build_snapshot"]
