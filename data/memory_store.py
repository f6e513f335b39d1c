"""
In-Memory Object Store

Arena-style implementation of the ObjectStore protocol: one dict per model
type, keyed by object id, preserving insertion order.
"""

import threading
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

T = TypeVar("T")


class MemoryObjectStore:
    """ObjectStore backed by plain dictionaries."""

    def __init__(self):
        self._arenas: Dict[type, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def insert(self, obj: Any) -> None:
        with self._lock:
            self._arenas.setdefault(type(obj), {})[obj.id] = obj

    def get(self, kind: Type[T], obj_id: str) -> Optional[T]:
        with self._lock:
            return self._arenas.get(kind, {}).get(obj_id)

    def delete(self, obj: Any) -> None:
        with self._lock:
            self._arenas.get(type(obj), {}).pop(obj.id, None)

    def query(self, kind: Type[T], predicate: Optional[Callable[[T], bool]] = None) -> List[T]:
        with self._lock:
            objects = list(self._arenas.get(kind, {}).values())
        if predicate is None:
            return objects
        return [obj for obj in objects if predicate(obj)]

    def count(self, kind: type) -> int:
        with self._lock:
            return len(self._arenas.get(kind, {}))
