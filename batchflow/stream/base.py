"""
Event stream interfaces and the JSON codec for the lifecycle envelope.

The transport itself is a collaborator: anything that can publish encoded
envelopes and hand them back in offset order satisfies these protocols.
Delivery is at-least-once and progress is not tied to sink writes.
"""

from __future__ import annotations

from typing import Iterable, List, Protocol, runtime_checkable

from pydantic import ValidationError

from batchflow.domain.models import LifecycleEvent
from batchflow.errors import EnvelopeDecodeError


def encode_event(event: LifecycleEvent) -> str:
    """Serialize an envelope using the wire field names (camelCase)."""
    return event.model_dump_json(by_alias=True)


def decode_event(raw: str | bytes) -> LifecycleEvent:
    """
    Parse a stream record into an envelope, ignoring unknown fields.

    Raises
    ------
    EnvelopeDecodeError
        If the record is not valid JSON or lacks required fields.
    """
    try:
        return LifecycleEvent.model_validate_json(raw)
    except ValidationError as exc:
        raise EnvelopeDecodeError(str(exc)) from exc


@runtime_checkable
class EventPublisher(Protocol):
    """Producer side of the stream."""

    def publish(self, event: LifecycleEvent) -> None: ...

    def publish_many(self, events: Iterable[LifecycleEvent]) -> None: ...


@runtime_checkable
class EventStream(Protocol):
    """
    Consumer side of the stream.

    ``poll`` waits at most ``timeout`` seconds and returns the raw records that
    became available, possibly none.
    """

    def poll(self, timeout: float) -> List[str]: ...

    def close(self) -> None: ...


__all__ = ["EventPublisher", "EventStream", "decode_event", "encode_event"]
