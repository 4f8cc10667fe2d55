"""Unit tests for rotwatch.watchdog."""
import threading

import pytest

from rotwatch.engine import VerificationEngine
from rotwatch.errors import ScanCancelled
from rotwatch.hasher import hash_file
from rotwatch.watchdog import StallWatchdog, WatchdogState
from tests.unit.conftest import write_file

TIMEOUT = 0.2
POLL = 0.05


class StallingHasher:
    """Hangs on one path for the first `stalls` calls, then hashes normally.

    A hang waits on the worker's cancel token, which is how a blocked read
    looks from the watchdog's side: no liveness until it gives up.
    """

    def __init__(self, stuck: str, stalls: int):
        self.stuck = stuck
        self.stalls = stalls
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self, path, chunk_size=0, progress=None, cancel=None):
        if path == self.stuck:
            with self._lock:
                self.calls += 1
                hang = self.calls <= self.stalls
            if hang:
                cancel.wait(10)
                raise ScanCancelled(path)
        return hash_file(path, progress=progress, cancel=cancel)


def _setup(store, tmp_path, hasher_factory):
    stuck = write_file(tmp_path / "stuck.bin", b"never arrives")
    others = [write_file(tmp_path / f"ok{i}.txt", f"ok {i}".encode()) for i in range(3)]
    hasher = hasher_factory(stuck)
    engine = VerificationEngine(store, hasher=hasher)
    engine.begin_iteration()
    engine.load([stuck] + others)
    return engine, hasher, stuck, others


class TestStallRecovery:
    def test_file_stalling_twice_is_skipped(self, store, tmp_path):
        engine, hasher, stuck, others = _setup(
            store, tmp_path, lambda p: StallingHasher(p, stalls=2)
        )
        watchdog = StallWatchdog(engine, timeout=TIMEOUT, poll_interval=POLL)
        watchdog.run()

        assert watchdog.state is WatchdogState.DONE
        assert hasher.calls == 2
        assert watchdog.skipped == [stuck]
        snap = engine.progress.snapshot()
        assert snap["retries"] == 1
        assert snap["stalled"] == 1
        assert snap["new"] == len(others)
        assert store.find_by_path(stuck) is None
        for path in others:
            assert store.find_by_path(path) is not None

    def test_retry_after_single_stall_succeeds(self, store, tmp_path):
        engine, hasher, stuck, others = _setup(
            store, tmp_path, lambda p: StallingHasher(p, stalls=1)
        )
        watchdog = StallWatchdog(engine, timeout=TIMEOUT, poll_interval=POLL)
        watchdog.run()

        assert hasher.calls == 2
        assert watchdog.skipped == []
        assert engine.progress.get("retries") == 1
        assert store.find_by_path(stuck) is not None
        assert store.count() == len(others) + 1

    def test_no_stall_runs_to_completion(self, store, tmp_path):
        engine, _, _, others = _setup(
            store, tmp_path, lambda p: StallingHasher(p, stalls=0)
        )
        polls = []
        watchdog = StallWatchdog(
            engine, timeout=TIMEOUT, poll_interval=POLL, on_poll=lambda: polls.append(1)
        )
        watchdog.run()

        assert watchdog.state is WatchdogState.DONE
        assert polls
        assert engine.progress.get("retries") == 0
        assert store.count() == len(others) + 1

    def test_empty_queue_finishes_immediately(self, store):
        engine = VerificationEngine(store)
        engine.begin_iteration()
        watchdog = StallWatchdog(engine, timeout=TIMEOUT, poll_interval=POLL)
        watchdog.run()
        assert watchdog.state is WatchdogState.DONE


class TestWorkerErrors:
    def test_per_file_error_is_counted_not_fatal(self, store, tmp_path):
        def broken(path, **kwargs):
            raise RuntimeError("disk on fire")

        path = write_file(tmp_path / "a.txt", b"a")
        engine = VerificationEngine(store, hasher=broken)
        engine.begin_iteration()
        engine.load([path])
        watchdog = StallWatchdog(engine, timeout=TIMEOUT, poll_interval=POLL)
        watchdog.run()
        assert watchdog.state is WatchdogState.DONE
        assert engine.progress.get("errors") == 1

    def test_worker_crash_is_reraised(self, store, monkeypatch):
        def boom(cancel):
            raise RuntimeError("worker crashed")

        engine = VerificationEngine(store)
        engine.begin_iteration()
        monkeypatch.setattr(engine, "drain", boom)
        watchdog = StallWatchdog(engine, timeout=TIMEOUT, poll_interval=POLL)
        with pytest.raises(RuntimeError, match="worker crashed"):
            watchdog.run()
        assert watchdog.state is WatchdogState.DONE
