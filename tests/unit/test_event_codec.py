from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from batchflow.domain.models import EventType, LifecycleEvent, ObjectType, Outcome, Status
from batchflow.errors import EnvelopeDecodeError
from batchflow.stream.base import decode_event, encode_event

WIRE_RECORD = {
    "eventType": "ITEM_UPDATED",
    "timestamp": "2024-03-01T12:01:30Z",
    "schemaVersion": 7,
    "payload": {
        "objectId": "batch-1-0002",
        "objectType": "item",
        "status": "COMPLETE",
        "outcome": "SUCCESS",
        "metadata": {"amount": "50.00", "parent_id": "batch-1"},
        "created": "2024-03-01T12:00:00Z",
        "updated": "2024-03-01T12:01:30Z",
        "traceId": "ignored",
    },
}


def test_decode_ignores_unknown_fields():
    event = decode_event(json.dumps(WIRE_RECORD))

    assert event.event_type is EventType.ITEM_UPDATED
    assert event.object_id == "batch-1-0002"
    assert event.payload.object_type is ObjectType.ITEM
    assert event.payload.status is Status.COMPLETE
    assert event.payload.outcome is Outcome.SUCCESS
    assert event.payload.updated == datetime(2024, 3, 1, 12, 1, 30, tzinfo=timezone.utc)
    assert event.is_item_event


def test_encode_uses_wire_names_and_second_precision(make_batch_event):
    event = make_batch_event()

    wire = json.loads(encode_event(event))

    assert wire["eventType"] == "OBJECT_CREATED"
    assert wire["timestamp"] == "2024-03-01T12:00:00Z"
    assert wire["payload"]["objectId"] == "batch-1"
    assert wire["payload"]["objectType"] == "batch"
    assert wire["payload"]["outcome"] == "-"
    assert wire["payload"]["created"] == "2024-03-01T12:00:00Z"


def test_decode_of_encoded_event_is_equal(make_item_event):
    event = make_item_event()

    assert decode_event(encode_event(event)) == event


def test_naive_timestamps_are_treated_as_utc_and_truncated():
    event = LifecycleEvent.model_validate(
        {
            "eventType": "OBJECT_CREATED",
            "timestamp": datetime(2024, 3, 1, 12, 0, 0, 987654),
            "payload": {
                "objectId": "b",
                "objectType": "batch",
                "status": "RECEIVED",
                "metadata": {"records": 3},
                "created": "2024-03-01T12:00:00Z",
                "updated": "2024-03-01T12:00:00Z",
            },
        }
    )

    assert event.timestamp == datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
    assert event.payload.metadata == {"records": "3"}
    assert event.payload.outcome is Outcome.PENDING


def test_batch_event_on_item_object_is_not_item_event(make_item_event):
    event = make_item_event(event_type=EventType.OBJECT_UPDATED)

    assert not event.is_item_event


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        json.dumps({"eventType": "OBJECT_CREATED"}),
        json.dumps({**WIRE_RECORD, "eventType": "OBJECT_DELETED"}),
    ],
)
def test_decode_rejects_malformed_records(raw):
    with pytest.raises(EnvelopeDecodeError):
        decode_event(raw)
