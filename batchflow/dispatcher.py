"""
Fan-out dispatcher: one poll loop feeding every sink.

Each polled record is decoded and handed to the sinks in registration order.
A failing sink is logged with the event's object id and the remaining sinks
still receive the event. Records that cannot be decoded are logged and skipped.
The dispatcher keeps no state across events beyond its counters; a record
counts as processed once every sink has been invoked, whatever the outcome.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Sequence

from batchflow.config import get_settings
from batchflow.errors import EnvelopeDecodeError
from batchflow.sinks.abstract import EventSink
from batchflow.stream.base import EventStream, decode_event
from batchflow.utils.logging import get_logger

log = get_logger(__name__)


class FanOutDispatcher:
    """
    Parameters
    ----------
    stream : EventStream
        Source of raw envelope records in offset order.
    sinks : sequence of EventSink
        Invoked in this order for every event.
    poll_timeout : float, optional
        Upper bound on each poll wait (defaults to settings.poll_timeout_seconds).
    """

    def __init__(
        self,
        stream: EventStream,
        sinks: Sequence[EventSink],
        poll_timeout: Optional[float] = None,
    ) -> None:
        self.stream = stream
        self.sinks: List[EventSink] = list(sinks)
        self.poll_timeout = (
            get_settings().poll_timeout_seconds if poll_timeout is None else poll_timeout
        )
        self._stop = threading.Event()

        self.processed = 0
        self.decode_errors = 0
        self.sink_errors: Dict[str, int] = {sink.name: 0 for sink in self.sinks}

    def process_record(self, raw: str) -> bool:
        """Decode one record and fan it out. Returns False if it was skipped."""
        try:
            event = decode_event(raw)
        except EnvelopeDecodeError:
            self.decode_errors += 1
            log.exception("Failed to decode stream record; skipping")
            return False

        object_id = event.object_id
        for sink in self.sinks:
            try:
                sink.handle(event)
            except Exception:  # noqa: BLE001 - sink failures are isolated per sink
                self.sink_errors[sink.name] = self.sink_errors.get(sink.name, 0) + 1
                log.exception(
                    f"Sink {sink.name} failed for object {object_id}",
                    extra={"sink": sink.name, "object_id": object_id},
                )
        self.processed += 1
        return True

    def poll_once(self, timeout: Optional[float] = None) -> int:
        """Poll the stream once and process whatever came back."""
        records = self.stream.poll(self.poll_timeout if timeout is None else timeout)
        for raw in records:
            self.process_record(raw)
        return len(records)

    def run(self) -> None:
        """Poll until ``stop`` is called."""
        log.info(
            f"Dispatcher started with sinks: {', '.join(sink.name for sink in self.sinks)}",
            extra={"sinks": [sink.name for sink in self.sinks]},
        )
        while not self._stop.is_set():
            self.poll_once()
        log.info("Dispatcher stopped", extra=self.stats())

    def run_until_idle(self, idle_polls: int = 1) -> int:
        """
        Poll until ``idle_polls`` consecutive polls return nothing.

        Used to drain a stream after producers have stopped, and to replay a
        finite file. Ignores ``stop``. Returns the number of records handled.
        """
        handled = 0
        idle = 0
        while idle < idle_polls:
            count = self.poll_once()
            handled += count
            idle = idle + 1 if count == 0 else 0
        return handled

    def stop(self) -> None:
        self._stop.set()

    def stats(self) -> Dict[str, object]:
        return {
            "processed": self.processed,
            "decode_errors": self.decode_errors,
            "sink_errors": dict(self.sink_errors),
        }


__all__ = ["FanOutDispatcher"]
