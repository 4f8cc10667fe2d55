"""Shared progress counters polled by the console renderer.

Both the worker thread and the watchdog mutate these; every mutation and every
snapshot goes through the instance lock so the renderer never sees a torn
read-modify-write.
"""
from __future__ import annotations

import threading
import time
from typing import Optional

_SCAN_COUNTERS = (
    "files_processed",
    "total_files",
    "bytes_processed",
    "total_bytes",
    "new",
    "updated",
    "matched",
    "alerts",
    "skipped",
    "vanished",
    "errors",
    "retries",
    "stalled",
)


class ScanProgress:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts = {name: 0 for name in _SCAN_COUNTERS}
        self._current_file = ""
        self._in_flight: Optional[str] = None
        self._last_read = time.monotonic()

    def add(self, **deltas: int) -> None:
        with self._lock:
            for name, delta in deltas.items():
                self._counts[name] += delta

    def get(self, name: str) -> int:
        with self._lock:
            return self._counts[name]

    # -- liveness -----------------------------------------------------------

    def mark_read(self, nbytes: int = 0) -> None:
        """Record forward I/O progress; nbytes is added to bytes_processed."""
        with self._lock:
            self._last_read = time.monotonic()
            if nbytes:
                self._counts["bytes_processed"] += nbytes

    def seconds_since_read(self) -> float:
        with self._lock:
            return time.monotonic() - self._last_read

    # -- in-flight file -----------------------------------------------------

    def begin_file(self, path: str) -> None:
        with self._lock:
            self._current_file = path
            self._in_flight = path
            self._last_read = time.monotonic()

    def finish_file(self, path: str, outcome: Optional[str] = None) -> None:
        with self._lock:
            if self._in_flight == path:
                self._in_flight = None
            self._counts["files_processed"] += 1
            if outcome:
                self._counts[outcome] += 1

    def take_in_flight(self) -> Optional[str]:
        """Return and clear the file the worker was processing."""
        with self._lock:
            path, self._in_flight = self._in_flight, None
            return path

    def snapshot(self) -> dict:
        with self._lock:
            snap = dict(self._counts)
            snap["current_file"] = self._current_file
            return snap


class PruneProgress:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.processed = 0
        self.total = 0
        self.pruned = 0

    def set_total(self, total: int) -> None:
        with self._lock:
            self.total = total

    def step(self, pruned: bool = False) -> None:
        with self._lock:
            self.processed += 1
            if pruned:
                self.pruned += 1

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "processed": self.processed,
                "total": self.total,
                "pruned": self.pruned,
            }
