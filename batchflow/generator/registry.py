"""
Active-object registry and original-metadata cache shared by the create and
update ticks.

Both maps live behind one lock so a tick never observes a half-registered
object (present in the registry but missing its metadata snapshot).
"""

from __future__ import annotations

import random
import threading
from typing import Dict, List, Optional

from batchflow.domain.models import ObjectPayload


class ActiveObjectStore:
    """
    Thread-safe owner of in-flight batch objects.

    The metadata cache holds the metadata exactly as generated at creation and
    is replayed on every update so business fields never drift.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._objects: Dict[str, ObjectPayload] = {}
        self._original_metadata: Dict[str, Dict[str, str]] = {}
        self.evictions = 0

    def register(self, payload: ObjectPayload) -> None:
        with self._lock:
            self._objects[payload.object_id] = payload
            self._original_metadata[payload.object_id] = dict(payload.metadata)

    def replace(self, payload: ObjectPayload) -> None:
        with self._lock:
            self._objects[payload.object_id] = payload

    def original_metadata(self, object_id: str) -> Optional[Dict[str, str]]:
        with self._lock:
            cached = self._original_metadata.get(object_id)
            return dict(cached) if cached is not None else None

    def pick(self, rng: Optional[random.Random] = None) -> Optional[ObjectPayload]:
        """Uniformly choose one active object, or None when nothing is active."""
        with self._lock:
            if not self._objects:
                return None
            object_id = (rng or random).choice(list(self._objects))
            return self._objects[object_id]

    def evict(self, object_id: str) -> bool:
        """
        Drop the object and its metadata snapshot.

        Returns True only for the call that actually removed the object.
        """
        with self._lock:
            removed = self._objects.pop(object_id, None)
            self._original_metadata.pop(object_id, None)
            if removed is not None:
                self.evictions += 1
            return removed is not None

    def active_ids(self) -> List[str]:
        with self._lock:
            return list(self._objects)

    def cached_ids(self) -> List[str]:
        with self._lock:
            return list(self._original_metadata)

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)

    def __contains__(self, object_id: object) -> bool:
        with self._lock:
            return object_id in self._objects


__all__ = ["ActiveObjectStore"]
