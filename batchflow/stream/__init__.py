"""
Stream package for batchflow.

Re-exports the publisher/stream protocols, the envelope codec and the
bundled stream implementations.
"""

from batchflow.stream.base import EventPublisher, EventStream, decode_event, encode_event
from batchflow.stream.jsonlines import JsonLinesEventStream, JsonLinesEventWriter
from batchflow.stream.memory import InMemoryEventStream

__all__ = [
    "EventPublisher",
    "EventStream",
    "InMemoryEventStream",
    "JsonLinesEventStream",
    "JsonLinesEventWriter",
    "decode_event",
    "encode_event",
]
