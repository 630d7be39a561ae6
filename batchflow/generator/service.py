"""
Batch event generator: the producer side of the pipeline.

Two tick operations share one ActiveObjectStore:

- ``create_batch`` emits OBJECT_CREATED plus one ITEM_CREATED per record for a
  new batch in RECEIVED, then registers it.
- ``update_batch`` advances one random active batch a single lifecycle step
  and emits OBJECT_UPDATED plus one ITEM_UPDATED per record, evicting the
  batch once it is terminal.

Either tick is a no-op when disabled. Failures abort the current tick only.
"""

from __future__ import annotations

import random
import threading
import uuid
from decimal import Decimal
from typing import Dict, List, Optional

from batchflow.config import get_settings
from batchflow.domain.directory import currency_info, pick_company
from batchflow.domain.lifecycle import batch_event_type, next_status, outcome_for
from batchflow.domain.models import (
    LifecycleEvent,
    ObjectPayload,
    ObjectType,
    Outcome,
    Status,
    utc_now,
)
from batchflow.errors import AmountInvariantError, MetadataValidationError
from batchflow.generator.items import derive_item_events
from batchflow.generator.registry import ActiveObjectStore
from batchflow.stream.base import EventPublisher
from batchflow.utils.logging import get_logger

log = get_logger(__name__)

REQUIRED_METADATA_KEYS = ("amount", "summary", "currency", "region")


def validate_batch_metadata(object_id: str, metadata: Dict[str, str]) -> None:
    """
    Check the synthetic metadata before a batch is published.

    Raises
    ------
    MetadataValidationError
        If a required key is missing or the amount is not a positive number.
    """
    missing = [key for key in REQUIRED_METADATA_KEYS if key not in metadata]
    if missing:
        raise MetadataValidationError(
            f"Batch metadata for {object_id} is missing: {', '.join(missing)}"
        )
    try:
        amount = Decimal(metadata["amount"])
    except ArithmeticError as exc:
        raise MetadataValidationError(
            f"Invalid amount format in batch metadata for {object_id}: {metadata['amount']!r}"
        ) from exc
    if not amount.is_finite() or amount <= 0:
        raise MetadataValidationError(f"Batch amount must be positive for {object_id}")


class BatchEventGenerator:
    """
    Creates and advances synthetic batch objects and publishes their events.

    Create and update ticks may run on different threads. Update ticks are
    serialized among themselves so one batch is never advanced twice from the
    same snapshot; create ticks never wait on them. A new batch only becomes
    visible to update ticks after its creation events are published, so its
    OBJECT_UPDATED events always follow OBJECT_CREATED on the stream.
    """

    def __init__(
        self,
        publisher: EventPublisher,
        store: Optional[ActiveObjectStore] = None,
        *,
        creation_enabled: Optional[bool] = None,
        update_enabled: Optional[bool] = None,
        batch_size_min: Optional[int] = None,
        batch_size_max: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        settings = get_settings()
        self.publisher = publisher
        self.store = store if store is not None else ActiveObjectStore()
        self.creation_enabled = (
            settings.batch_creation_enabled if creation_enabled is None else creation_enabled
        )
        self.update_enabled = (
            settings.batch_update_enabled if update_enabled is None else update_enabled
        )
        self.batch_size_min = batch_size_min or settings.batch_size_min
        self.batch_size_max = batch_size_max or settings.batch_size_max
        if self.batch_size_max < self.batch_size_min:
            raise ValueError("batch_size_max must be >= batch_size_min")
        self.rng = rng or random.Random()
        self._rng_lock = threading.Lock()
        self._update_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Synthetic data
    # ------------------------------------------------------------------

    def generate_amount(self) -> Decimal:
        """
        70% clamped normal around 65 in [50, 80], 20% uniform [20, 49],
        10% uniform [81, 200].
        """
        with self._rng_lock:
            bucket = self.rng.random()
            if bucket < 0.70:
                amount = min(80.0, max(50.0, self.rng.gauss(65.0, 8.0)))
            elif bucket < 0.90:
                amount = self.rng.uniform(20.0, 49.0)
            else:
                amount = self.rng.uniform(81.0, 200.0)
        return Decimal(f"{amount:.2f}")

    def generate_metadata(self) -> Dict[str, str]:
        with self._rng_lock:
            records = self.rng.randint(self.batch_size_min, self.batch_size_max)
            batch_number = self.rng.randrange(1000)
            priority = "high" if self.rng.random() < 0.5 else "normal"
            company, region = pick_company(self.rng)
        metadata = {
            "records": str(records),
            "source": "automated",
            "batch": str(batch_number),
            "priority": priority,
            "summary": company,
            "region": region,
        }
        metadata.update(currency_info(region, self.generate_amount()))
        return metadata

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    def create_batch(self) -> Optional[ObjectPayload]:
        """
        Creation tick. Returns the new batch, or None when disabled or aborted.
        """
        if not self.creation_enabled:
            return None

        object_id = str(uuid.uuid4())
        metadata = self.generate_metadata()
        try:
            validate_batch_metadata(object_id, metadata)
        except MetadataValidationError:
            log.exception("Rejected generated batch metadata", extra={"object_id": object_id})
            return None

        now = utc_now()
        payload = ObjectPayload(
            object_id=object_id,
            object_type=ObjectType.BATCH,
            status=Status.RECEIVED,
            outcome=Outcome.PENDING,
            metadata=metadata,
            created=now,
            updated=now,
        )
        self.publisher.publish(
            LifecycleEvent(event_type=batch_event_type("CREATED"), timestamp=now, payload=payload)
        )
        self._emit_items(payload, "CREATED", Status.RECEIVED)
        # Not pickable by update ticks until its CREATED events are on the stream.
        self.store.register(payload)

        log.info(
            f"Generated new batch object: {object_id} with {metadata['records']} records, "
            f"amount: {metadata['formatted_amount']}, company: {metadata['summary']}",
            extra={"object_id": object_id},
        )
        return payload

    def update_batch(self) -> Optional[ObjectPayload]:
        """
        Update tick. Returns the advanced batch, or None when there was nothing
        to advance.
        """
        if not self.update_enabled:
            return None

        with self._update_lock:
            with self._rng_lock:
                existing = self.store.pick(self.rng)
            if existing is None or existing.is_terminal:
                return None

            object_id = existing.object_id
            with self._rng_lock:
                new_status = next_status(existing.status, self.rng)
            now = utc_now()

            metadata = self.store.original_metadata(object_id)
            if metadata is None:
                log.warning(
                    f"Original metadata not found for batch {object_id}, using existing metadata",
                    extra={"object_id": object_id},
                )
                metadata = dict(existing.metadata)

            updated = ObjectPayload(
                object_id=object_id,
                object_type=existing.object_type,
                status=new_status,
                outcome=outcome_for(new_status),
                metadata=metadata,
                created=existing.created,
                updated=now,
            )
            self.store.replace(updated)
            self.publisher.publish(
                LifecycleEvent(
                    event_type=batch_event_type("UPDATED"), timestamp=now, payload=updated
                )
            )
            self._emit_items(updated, "UPDATED", new_status)

            log.info(
                f"Updated batch object: {object_id} from {existing.status.value} to "
                f"{new_status.value} (preserving amount: {metadata.get('formatted_amount')}, "
                f"company: {metadata.get('summary')})",
                extra={"object_id": object_id},
            )

            if new_status.is_terminal and self.store.evict(object_id):
                log.info(
                    f"Batch object {object_id} reached terminal status: {new_status.value}",
                    extra={"object_id": object_id},
                )
            return updated

    def _emit_items(self, batch: ObjectPayload, action: str, status: Status) -> List[LifecycleEvent]:
        try:
            events = derive_item_events(batch, action, status)
        except AmountInvariantError as exc:
            log.error(
                str(exc),
                extra={
                    "object_id": exc.batch_id,
                    "item_sum": f"{exc.item_sum:.2f}",
                    "batch_total": f"{exc.batch_total:.2f}",
                },
            )
            return []

        self.publisher.publish_many(events)
        log.info(
            f"Generated {len(events)} item audit events for batch {batch.object_id} "
            f"with status {status.value} (amounts: "
            f"{[event.payload.metadata['amount'] for event in events]} -> "
            f"total: {batch.metadata.get('amount')})",
            extra={"object_id": batch.object_id},
        )
        return events


__all__ = ["BatchEventGenerator", "REQUIRED_METADATA_KEYS", "validate_batch_metadata"]
