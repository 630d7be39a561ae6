"""
Sink interfaces for the fan-out dispatcher.

Every sink implements the same small contract: ``open`` once before the first
event, ``handle`` per event (may raise; the dispatcher isolates failures), and
``close`` once at shutdown.
"""

from __future__ import annotations

import abc
from typing import Dict, Protocol, runtime_checkable

from batchflow.domain.models import LifecycleEvent


@runtime_checkable
class EventSink(Protocol):
    """
    Common interface all sinks must implement.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier used in logs.
    """

    name: str

    def open(self) -> None: ...

    def handle(self, event: LifecycleEvent) -> None:
        """
        Persist one event.

        Raises
        ------
        Exception
            Any store failure; the dispatcher logs it with the object id and
            moves on to the next sink.
        """
        ...

    def close(self) -> None: ...


class AbstractEventSink(abc.ABC):
    """
    Optional ABC helper for class-based sinks.

    Subclasses set ``name`` and implement ``handle``; ``open``/``close``
    default to no-ops.
    """

    name: str

    def open(self) -> None:
        return None

    @abc.abstractmethod
    def handle(self, event: LifecycleEvent) -> None:  # pragma: no cover - interface only
        """Persist one event."""
        raise NotImplementedError

    def close(self) -> None:
        return None

    def stats(self) -> Dict[str, int]:
        """Counters reported in the run summary."""
        return {}


__all__ = ["AbstractEventSink", "EventSink"]
