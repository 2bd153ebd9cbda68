from __future__ import annotations

import threading
from typing import Dict


class MetricsStore:
    """Thread-safe in-memory metrics."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {
            "snapshots_written": 0,
            "snapshots_skipped": 0,
            "bytes_serialized": 0,
            "purges": 0,
            "retained_bytes": 0,
        }

    def record_write(self, size_bytes: int | None) -> None:
        with self._lock:
            if size_bytes is None:
                self._counters["snapshots_skipped"] += 1
                return
            self._counters["snapshots_written"] += 1
            self._counters["bytes_serialized"] += size_bytes

    def record_purge(self, retained_bytes: int) -> None:
        with self._lock:
            self._counters["purges"] += 1
            # Last known disk usage, not a running sum
            self._counters["retained_bytes"] = retained_bytes

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)


metrics = MetricsStore()
