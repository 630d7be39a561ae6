"""
Fixed-delay periodic tasks on daemon threads.

Stands in for the external scheduler that fires the create and update ticks.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from batchflow.utils.logging import get_logger

log = get_logger(__name__)


class PeriodicTask:
    """
    Run ``fn`` every ``interval`` seconds (delay measured between runs).

    Exceptions escaping ``fn`` are logged and the loop keeps going.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        fn: Callable[[], object],
        initial_delay: Optional[float] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.fn = fn
        self.initial_delay = interval if initial_delay is None else initial_delay
        self.runs = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _loop(self) -> None:
        if self._stop.wait(self.initial_delay):
            return
        while not self._stop.is_set():
            try:
                self.fn()
            except Exception:  # noqa: BLE001 - a failing tick must not kill the schedule
                log.exception(f"Periodic task {self.name} failed", extra={"task": self.name})
            self.runs += 1
            if self._stop.wait(self.interval):
                return

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


__all__ = ["PeriodicTask"]
