"""
Audit trail sink: one immutable audit row per lifecycle event.

Batch events upsert the batch's current state and audit themselves as their
own parent. Item events are written only once their parent batch is visible
in the store; orphans are logged and dropped.
"""

from __future__ import annotations

import uuid
from typing import Callable, Dict, Protocol

from batchflow.domain.models import AuditEntry, LifecycleEvent, ObjectPayload, ObjectType
from batchflow.errors import SinkError
from batchflow.sinks.abstract import AbstractEventSink
from batchflow.utils.logging import get_logger

log = get_logger(__name__)


class AuditStore(Protocol):
    def open(self) -> None: ...

    def upsert_batch_object(self, payload: ObjectPayload) -> None: ...

    def batch_exists(self, object_id: str) -> bool: ...

    def insert_entry(self, entry: AuditEntry) -> None: ...

    def close(self) -> None: ...


class AuditTrailSink(AbstractEventSink):
    """
    Parameters
    ----------
    store : AuditStore
        Backing store; its schema is bootstrapped by ``open``.
    id_factory : callable, optional
        Source of fresh audit ids (uuid4 by default).
    """

    name = "audit_trail"

    def __init__(self, store: AuditStore, id_factory: Callable[[], str] | None = None) -> None:
        self.store = store
        self.id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self.written = 0
        self.orphans = 0

    def open(self) -> None:
        self.store.open()
        log.info("AuditTrailSink initialized successfully")

    def handle(self, event: LifecycleEvent) -> None:
        try:
            if event.is_item_event:
                self._handle_item(event)
            else:
                self._handle_batch(event)
        except Exception as exc:
            raise SinkError(f"Failed to write audit entry for {event.object_id}") from exc

    def _handle_batch(self, event: LifecycleEvent) -> None:
        payload = event.payload
        self.store.upsert_batch_object(payload)
        self._write_entry(event, parent_id=payload.object_id, parent_type=payload.object_type.value)

    def _handle_item(self, event: LifecycleEvent) -> None:
        payload = event.payload
        parent_id = payload.metadata.get("parent_id")
        parent_type = payload.metadata.get("parent_type") or ObjectType.BATCH.value

        if not parent_id or not self.store.batch_exists(parent_id):
            self.orphans += 1
            log.warning(
                f"Parent batch {parent_id} not found for item {payload.object_id}",
                extra={"object_id": payload.object_id, "sink": self.name},
            )
            return

        self._write_entry(event, parent_id=parent_id, parent_type=parent_type)
        log.debug(f"Created item audit entry: {payload.object_id}")

    def _write_entry(self, event: LifecycleEvent, parent_id: str, parent_type: str) -> None:
        payload = event.payload
        entry = AuditEntry(
            audit_id=self.id_factory(),
            object_id=payload.object_id,
            object_type=payload.object_type,
            parent_id=parent_id,
            parent_type=parent_type,
            action=event.event_type.action,
            new_status=payload.status,
            new_outcome=payload.outcome,
            timestamp=event.timestamp,
            metadata=dict(payload.metadata),
        )
        self.store.insert_entry(entry)
        self.written += 1

    def close(self) -> None:
        self.store.close()
        log.info("AuditTrailSink closed")

    def stats(self) -> Dict[str, int]:
        return {"written": self.written, "orphans": self.orphans}


__all__ = ["AuditStore", "AuditTrailSink"]
