from __future__ import annotations

import logging
import threading
from collections import defaultdict
from decimal import Decimal

import pytest

from batchflow.domain.models import EventType, ObjectType, Outcome, Status
from batchflow.errors import MetadataValidationError
from batchflow.generator import items
from batchflow.generator.service import BatchEventGenerator, validate_batch_metadata

MAX_STEPS_TO_TERMINAL = 4
AMOUNT_SAMPLES = 2_000
SIZE_MIN = 2
SIZE_MAX = 5


@pytest.fixture
def generator(publisher, rng) -> BatchEventGenerator:
    return BatchEventGenerator(
        publisher,
        creation_enabled=True,
        update_enabled=True,
        batch_size_min=SIZE_MIN,
        batch_size_max=SIZE_MAX,
        rng=rng,
    )


def _events_for(publisher, object_id):
    return [event for event in publisher.events if event.object_id == object_id]


def test_disabled_ticks_emit_nothing(publisher, rng):
    generator = BatchEventGenerator(
        publisher, creation_enabled=False, update_enabled=False, rng=rng
    )

    assert generator.create_batch() is None
    assert generator.update_batch() is None
    assert publisher.events == []


def test_update_with_no_active_batches_emits_nothing(generator, publisher):
    assert generator.update_batch() is None
    assert publisher.events == []


def test_create_batch_publishes_batch_then_items(generator, publisher):
    batch = generator.create_batch()

    records = int(batch.metadata["records"])
    assert SIZE_MIN <= records <= SIZE_MAX
    assert batch.status is Status.RECEIVED
    assert batch.outcome is Outcome.PENDING
    assert batch.object_id in generator.store

    first, *item_events = publisher.events
    assert first.event_type is EventType.OBJECT_CREATED
    assert first.payload == batch
    assert len(item_events) == records
    assert {event.event_type for event in item_events} == {EventType.ITEM_CREATED}
    assert sum(Decimal(event.payload.metadata["amount"]) for event in item_events) == Decimal(
        batch.metadata["amount"]
    )


def test_generated_metadata_has_business_fields(generator):
    metadata = generator.generate_metadata()

    assert metadata["source"] == "automated"
    assert metadata["priority"] in ("high", "normal")
    assert 0 <= int(metadata["batch"]) <= 999
    assert metadata["region"] in ("US", "AU", "UK")
    assert metadata["formatted_amount"].endswith(metadata["amount"])
    validate_batch_metadata("batch-x", metadata)


def test_amounts_follow_bucketed_distribution(generator):
    amounts = [generator.generate_amount() for _ in range(AMOUNT_SAMPLES)]

    assert all(Decimal("20") <= amount <= Decimal("200") for amount in amounts)
    core = sum(Decimal("50") <= amount <= Decimal("80") for amount in amounts)
    assert 0.6 < core / AMOUNT_SAMPLES < 0.8


def test_updates_preserve_original_metadata_until_terminal(generator, publisher):
    batch = generator.create_batch()

    statuses = []
    for _ in range(MAX_STEPS_TO_TERMINAL):
        updated = generator.update_batch()
        assert updated.metadata == batch.metadata
        assert updated.created == batch.created
        statuses.append(updated.status)
        if updated.is_terminal:
            break

    assert statuses[0] is Status.VALIDATING
    assert statuses[-1] in (Status.COMPLETE, Status.INVALID)
    assert batch.object_id not in generator.store
    assert generator.store.cached_ids() == []
    assert generator.store.evictions == 1
    assert generator.update_batch() is None

    batch_updates = [
        event
        for event in _events_for(publisher, batch.object_id)
        if event.event_type is EventType.OBJECT_UPDATED
    ]
    assert [event.payload.status for event in batch_updates] == statuses

    item_sets = defaultdict(list)
    for event in publisher.events:
        payload = event.payload
        if payload.object_type is ObjectType.ITEM and payload.metadata["parent_id"] == batch.object_id:
            item_sets[(event.event_type, payload.status)].append(Decimal(payload.metadata["amount"]))

    assert len(item_sets) == 1 + len(statuses)
    for amounts in item_sets.values():
        assert len(amounts) == int(batch.metadata["records"])
        assert sum(amounts) == Decimal(batch.metadata["amount"])


class _UpdateDuringCreatePublisher:
    """Runs an update tick on another thread while OBJECT_CREATED is being published."""

    def __init__(self) -> None:
        self.events = []
        self.generator = None
        self._lock = threading.Lock()

    def publish(self, event) -> None:
        if event.event_type is EventType.OBJECT_CREATED:
            updater = threading.Thread(target=self.generator.update_batch)
            updater.start()
            updater.join()
        with self._lock:
            self.events.append(event)

    def publish_many(self, events) -> None:
        for event in events:
            self.publish(event)


def test_update_tick_cannot_overtake_creation_events(rng):
    publisher = _UpdateDuringCreatePublisher()
    generator = BatchEventGenerator(
        publisher,
        creation_enabled=True,
        update_enabled=True,
        batch_size_min=SIZE_MIN,
        batch_size_max=SIZE_MAX,
        rng=rng,
    )
    publisher.generator = generator

    batch = generator.create_batch()
    generator.update_batch()

    batch_events = [
        (event.event_type, event.payload.status) for event in _events_for(publisher, batch.object_id)
    ]
    assert batch_events == [
        (EventType.OBJECT_CREATED, Status.RECEIVED),
        (EventType.OBJECT_UPDATED, Status.VALIDATING),
    ]
    item_types = [
        event.event_type
        for event in publisher.events
        if event.payload.object_type is ObjectType.ITEM
    ]
    records = int(batch.metadata["records"])
    assert item_types == [EventType.ITEM_CREATED] * records + [EventType.ITEM_UPDATED] * records


def test_terminal_update_carries_outcome_to_items(generator, publisher):
    batch = generator.create_batch()
    final = None
    for _ in range(MAX_STEPS_TO_TERMINAL):
        final = generator.update_batch()
        if final.is_terminal:
            break

    terminal_items = [
        event
        for event in publisher.events
        if event.payload.object_type is ObjectType.ITEM
        and event.payload.metadata["parent_id"] == batch.object_id
        and event.payload.status is final.status
    ]
    assert len(terminal_items) == int(batch.metadata["records"])
    assert {event.payload.outcome for event in terminal_items} == {final.outcome}


def test_invalid_metadata_aborts_creation(generator, publisher, monkeypatch, caplog):
    monkeypatch.setattr(generator, "generate_metadata", lambda: {"records": "2", "summary": "X"})

    with caplog.at_level(logging.ERROR):
        assert generator.create_batch() is None

    assert publisher.events == []
    assert len(generator.store) == 0
    assert "Rejected generated batch metadata" in caplog.text


def test_amount_invariant_failure_skips_item_events(generator, publisher, monkeypatch, caplog):
    monkeypatch.setattr(items, "distribute_amount", lambda total, count: [Decimal("0.01")] * count)

    with caplog.at_level(logging.ERROR):
        batch = generator.create_batch()

    assert [event.event_type for event in publisher.events] == [EventType.OBJECT_CREATED]
    assert batch.metadata["amount"] in caplog.text


@pytest.mark.parametrize(
    "metadata",
    [
        {"summary": "X", "currency": "USD", "region": "US"},
        {"amount": "abc", "summary": "X", "currency": "USD", "region": "US"},
        {"amount": "-5.00", "summary": "X", "currency": "USD", "region": "US"},
        {"amount": "NaN", "summary": "X", "currency": "USD", "region": "US"},
    ],
)
def test_validate_batch_metadata_rejects(metadata):
    with pytest.raises(MetadataValidationError):
        validate_batch_metadata("b-1", metadata)


def test_inverted_size_range_is_rejected(publisher):
    with pytest.raises(ValueError):
        BatchEventGenerator(publisher, batch_size_min=5, batch_size_max=2)
