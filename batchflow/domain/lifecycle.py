"""
Lifecycle state machine for batch objects.

    RECEIVED -> VALIDATING -> {ENRICHING | INVALID} -> PROCESSING -> COMPLETE

INVALID and COMPLETE are terminal. The only branch is VALIDATING, decided by a
fair coin flip.
"""
from __future__ import annotations

import random
from typing import Optional

from batchflow.domain.models import EventType, Outcome, Status

_DETERMINISTIC_TRANSITIONS = {
    Status.RECEIVED: Status.VALIDATING,
    Status.ENRICHING: Status.PROCESSING,
    Status.PROCESSING: Status.COMPLETE,
}


def next_status(current: Status, rng: Optional[random.Random] = None) -> Status:
    """
    Return the status following ``current``.

    Terminal statuses map to themselves; callers skip terminal objects instead
    of advancing them.
    """
    if current.is_terminal:
        return current
    if current is Status.VALIDATING:
        coin = (rng or random).random() < 0.5
        return Status.INVALID if coin else Status.ENRICHING
    return _DETERMINISTIC_TRANSITIONS[current]


def outcome_for(status: Status) -> Outcome:
    if status is Status.INVALID:
        return Outcome.FAILURE
    if status is Status.COMPLETE:
        return Outcome.SUCCESS
    return Outcome.PENDING


def batch_event_type(action: str) -> EventType:
    """``CREATED`` -> OBJECT_CREATED, ``UPDATED`` -> OBJECT_UPDATED."""
    return EventType(f"OBJECT_{action}")


def item_event_type(action: str) -> EventType:
    """``CREATED`` -> ITEM_CREATED, ``UPDATED`` -> ITEM_UPDATED."""
    return EventType(f"ITEM_{action}")


__all__ = ["batch_event_type", "item_event_type", "next_status", "outcome_for"]
