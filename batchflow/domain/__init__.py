"""
Domain package for batchflow.

Exports the event contract, the amount allocator and the lifecycle state
machine. Keep this package free of I/O.
"""

from batchflow.domain.allocation import distribute_amount, to_cents
from batchflow.domain.lifecycle import next_status, outcome_for
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

__all__ = [
    "AuditEntry",
    "EventType",
    "LifecycleEvent",
    "MetricsEvent",
    "ObjectPayload",
    "ObjectType",
    "Outcome",
    "Status",
    "distribute_amount",
    "next_status",
    "outcome_for",
    "to_cents",
]
