"""
JSON-lines event files: one encoded envelope per line.

``JsonLinesEventWriter`` captures a generator run to disk and
``JsonLinesEventStream`` replays it through the dispatcher.
"""

from __future__ import annotations

from pathlib import Path
from typing import IO, Iterable, List, Optional

from batchflow.domain.models import LifecycleEvent
from batchflow.stream.base import encode_event


class JsonLinesEventWriter:
    """Publisher that appends encoded envelopes to a file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh: IO[str] = self.path.open("w", encoding="utf-8")
        self.published = 0

    def publish(self, event: LifecycleEvent) -> None:
        self._fh.write(encode_event(event))
        self._fh.write("\n")
        self.published += 1

    def publish_many(self, events: Iterable[LifecycleEvent]) -> None:
        for event in events:
            self.publish(event)

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()

    def __enter__(self) -> "JsonLinesEventWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class JsonLinesEventStream:
    """
    Stream that reads envelopes from a file in batches of ``batch_size`` lines.

    Blank lines are skipped. Once the file is exhausted ``poll`` returns an
    empty list and ``exhausted`` is True.
    """

    def __init__(self, path: Path | str, batch_size: int = 100) -> None:
        self.path = Path(path)
        self.batch_size = batch_size
        self._fh: Optional[IO[str]] = self.path.open("r", encoding="utf-8")
        self.exhausted = False

    def poll(self, timeout: float) -> List[str]:
        del timeout
        if self._fh is None:
            return []
        records: List[str] = []
        while len(records) < self.batch_size:
            line = self._fh.readline()
            if not line:
                self.exhausted = True
                break
            line = line.strip()
            if line:
                records.append(line)
        return records

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None


__all__ = ["JsonLinesEventStream", "JsonLinesEventWriter"]
