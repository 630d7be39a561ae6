"""
Event contract shared by the generator (producer) and the dispatcher (consumer).

The envelope is forward compatible: readers ignore unknown top-level and
payload fields. Timestamps are UTC with second precision and serialize as
``YYYY-MM-DDTHH:MM:SSZ``.
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_now() -> datetime:
    """Current UTC time truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def _as_utc_seconds(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0)


class EventType(str, Enum):
    OBJECT_CREATED = "OBJECT_CREATED"
    OBJECT_UPDATED = "OBJECT_UPDATED"
    ITEM_CREATED = "ITEM_CREATED"
    ITEM_UPDATED = "ITEM_UPDATED"

    @property
    def is_item_event(self) -> bool:
        return self.value.startswith("ITEM_")

    @property
    def action(self) -> str:
        """``CREATED`` or ``UPDATED``."""
        return self.value.split("_", 1)[1]


class ObjectType(str, Enum):
    BATCH = "batch"
    ITEM = "item"


class Status(str, Enum):
    RECEIVED = "RECEIVED"
    VALIDATING = "VALIDATING"
    ENRICHING = "ENRICHING"
    PROCESSING = "PROCESSING"
    COMPLETE = "COMPLETE"
    INVALID = "INVALID"

    @property
    def is_terminal(self) -> bool:
        return self in (Status.COMPLETE, Status.INVALID)


class Outcome(str, Enum):
    PENDING = "-"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class ObjectPayload(BaseModel):
    """
    Snapshot of a batch or item object as carried in an event.
    """

    object_id: str = Field(..., alias="objectId")
    object_type: ObjectType = Field(..., alias="objectType")
    status: Status
    outcome: Outcome = Outcome.PENDING
    metadata: Dict[str, str] = Field(default_factory=dict)
    created: datetime
    updated: datetime

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("created", "updated")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return _as_utc_seconds(value)

    @field_validator("metadata", mode="before")
    @classmethod
    def _stringify_metadata(cls, value: object) -> object:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value

    @field_serializer("created", "updated")
    def _serialize_timestamp(self, value: datetime) -> str:
        return value.strftime(TIMESTAMP_FORMAT)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class LifecycleEvent(BaseModel):
    """
    Envelope published on the event stream.
    """

    event_type: EventType = Field(..., alias="eventType")
    timestamp: datetime
    payload: ObjectPayload

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return _as_utc_seconds(value)

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> str:
        return value.strftime(TIMESTAMP_FORMAT)

    @property
    def object_id(self) -> str:
        return self.payload.object_id

    @property
    def is_item_event(self) -> bool:
        return self.event_type.is_item_event and self.payload.object_type is ObjectType.ITEM


class MetricsEvent(BaseModel):
    """
    Analytics projection of a terminal item event.
    """

    event_id: str
    audit_id: str
    batch_id: Optional[str] = None
    company_id: str = "UNKNOWN"
    company_name: str = "Unknown Company"
    amount: Decimal = Decimal("0")
    status: Status
    outcome: Outcome
    completed_at: datetime
    processing_time_ms: int = 0

    model_config = {"frozen": True}


class AuditEntry(BaseModel):
    """
    One append-only audit row. Previous status/outcome are never tracked.
    """

    audit_id: str
    object_id: str
    object_type: ObjectType
    parent_id: str
    parent_type: str
    action: str
    new_status: Status
    new_outcome: Outcome
    timestamp: datetime
    metadata: Dict[str, str] = Field(default_factory=dict)
    previous_status: Optional[str] = None
    previous_outcome: Optional[str] = None

    model_config = {"frozen": True}


__all__ = [
    "AuditEntry",
    "EventType",
    "LifecycleEvent",
    "MetricsEvent",
    "ObjectPayload",
    "ObjectType",
    "Outcome",
    "Status",
    "TIMESTAMP_FORMAT",
    "utc_now",
]
