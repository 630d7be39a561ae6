"""
In-process stream backed by a FIFO queue.

Single partition: records come back in the order they were published, which
stands in for stream offset order. Used by the in-process pipeline and tests.
"""

from __future__ import annotations

import queue
import threading
from typing import Iterable, List

from batchflow.domain.models import LifecycleEvent
from batchflow.stream.base import encode_event


class InMemoryEventStream:
    """Publisher and stream over a ``queue.Queue`` of encoded envelopes."""

    def __init__(self, max_batch: int = 500) -> None:
        self._queue: "queue.Queue[str]" = queue.Queue()
        self._max_batch = max_batch
        self._closed = threading.Event()
        self.published = 0

    def publish(self, event: LifecycleEvent) -> None:
        if self._closed.is_set():
            raise RuntimeError("stream is closed")
        self._queue.put(encode_event(event))
        self.published += 1

    def publish_many(self, events: Iterable[LifecycleEvent]) -> None:
        for event in events:
            self.publish(event)

    def poll(self, timeout: float) -> List[str]:
        records: List[str] = []
        try:
            records.append(self._queue.get(timeout=timeout))
        except queue.Empty:
            return records
        while len(records) < self._max_batch:
            try:
                records.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return records

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self._closed.set()


__all__ = ["InMemoryEventStream"]
