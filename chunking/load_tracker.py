"""In-flight operation counters per backend for load-aware selection."""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator

from common.constants import BACKEND_OVERLOAD_THRESHOLD


class BackendLoadTracker:
    """
    Counts in-flight operations per backend id.

    Passed explicitly to whatever needs it. Incremented on assignment,
    decremented on completion, never below zero.
    """

    def __init__(self, overload_threshold: int = BACKEND_OVERLOAD_THRESHOLD):
        self.overload_threshold = overload_threshold
        self._loads: Dict[str, int] = {}
        self._lock = threading.Lock()

    def acquire(self, backend_id: str) -> int:
        with self._lock:
            load = self._loads.get(backend_id, 0) + 1
            self._loads[backend_id] = load
            return load

    def release(self, backend_id: str) -> int:
        with self._lock:
            load = max(0, self._loads.get(backend_id, 0) - 1)
            if load:
                self._loads[backend_id] = load
            else:
                self._loads.pop(backend_id, None)
            return load

    @contextmanager
    def track(self, backend_id: str) -> Iterator[None]:
        self.acquire(backend_id)
        try:
            yield
        finally:
            self.release(backend_id)

    def load(self, backend_id: str) -> int:
        with self._lock:
            return self._loads.get(backend_id, 0)

    def is_overloaded(self, backend_id: str) -> bool:
        return self.load(backend_id) > self.overload_threshold

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._loads)
