"""Thread-safe operational counters for the ingestion service."""

import threading
import time
from collections import defaultdict


class Metrics:
    def __init__(self):
        self._lock = threading.Lock()
        self._ingested = 0
        self._rejected: dict[str, int] = defaultdict(int)
        self._persistence_failures = 0
        self._broadcast_failures = 0
        self._start_time = time.monotonic()

    def record_ingested(self):
        with self._lock:
            self._ingested += 1

    def record_rejected(self, kind: str):
        with self._lock:
            self._rejected[kind] += 1

    def record_persistence_failure(self):
        with self._lock:
            self._persistence_failures += 1

    def record_broadcast_failure(self):
        with self._lock:
            self._broadcast_failures += 1

    def snapshot(self) -> dict:
        """Return a point-in-time snapshot of all counters."""
        with self._lock:
            return {
                "ingested": self._ingested,
                "rejected": dict(self._rejected),
                "persistence_failures": self._persistence_failures,
                "broadcast_failures": self._broadcast_failures,
                "uptime_seconds": round(time.monotonic() - self._start_time, 1),
            }
