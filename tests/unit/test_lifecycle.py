from __future__ import annotations

import random

import pytest

from batchflow.domain.lifecycle import batch_event_type, item_event_type, next_status, outcome_for
from batchflow.domain.models import EventType, Outcome, Status

COIN_FLIPS = 2_000


class _FixedRandom(random.Random):
    def __init__(self, value: float) -> None:
        super().__init__()
        self._value = value

    def random(self) -> float:
        return self._value


@pytest.mark.parametrize(
    "current, expected",
    [
        (Status.RECEIVED, Status.VALIDATING),
        (Status.ENRICHING, Status.PROCESSING),
        (Status.PROCESSING, Status.COMPLETE),
    ],
)
def test_deterministic_transitions(current, expected):
    assert next_status(current) is expected


@pytest.mark.parametrize("terminal", [Status.COMPLETE, Status.INVALID])
def test_terminal_statuses_map_to_themselves(terminal):
    assert next_status(terminal) is terminal


def test_validating_branches_on_coin_flip():
    assert next_status(Status.VALIDATING, _FixedRandom(0.1)) is Status.INVALID
    assert next_status(Status.VALIDATING, _FixedRandom(0.9)) is Status.ENRICHING


def test_validating_branch_is_roughly_fair():
    rng = random.Random(7)
    invalid = sum(
        next_status(Status.VALIDATING, rng) is Status.INVALID for _ in range(COIN_FLIPS)
    )
    assert 0.4 < invalid / COIN_FLIPS < 0.6


@pytest.mark.parametrize(
    "status, outcome",
    [
        (Status.RECEIVED, Outcome.PENDING),
        (Status.VALIDATING, Outcome.PENDING),
        (Status.ENRICHING, Outcome.PENDING),
        (Status.PROCESSING, Outcome.PENDING),
        (Status.COMPLETE, Outcome.SUCCESS),
        (Status.INVALID, Outcome.FAILURE),
    ],
)
def test_outcome_for_status(status, outcome):
    assert outcome_for(status) is outcome


def test_event_type_helpers():
    assert batch_event_type("CREATED") is EventType.OBJECT_CREATED
    assert batch_event_type("UPDATED") is EventType.OBJECT_UPDATED
    assert item_event_type("CREATED") is EventType.ITEM_CREATED
    assert item_event_type("UPDATED") is EventType.ITEM_UPDATED
    assert EventType.ITEM_UPDATED.action == "UPDATED"
    assert EventType.OBJECT_CREATED.is_item_event is False
