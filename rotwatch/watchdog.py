"""Stall watchdog — supervise the engine's worker thread and recover from hung reads."""
from __future__ import annotations

import enum
import logging
import threading
from typing import Callable, Optional

from rotwatch.engine import VerificationEngine
from rotwatch.errors import ScanCancelled

logger = logging.getLogger("rotwatch.watchdog")

DEFAULT_STALL_TIMEOUT = 5.0  # seconds without a successful read
DEFAULT_POLL_INTERVAL = 1.0


class WatchdogState(enum.Enum):
    RUNNING = "running"
    STALLED = "stalled"
    DONE = "done"


class StallWatchdog:
    """
    Run engine.drain() in a daemon thread and poll it every poll_interval.

    When no read has made progress for longer than timeout, the worker's cancel
    token is set and a fresh worker is started on the remaining queue. The file
    that was in flight is retried once; if the very next stall is on the same
    file it is dropped. A thread blocked in a read that never returns is simply
    abandoned: its token is already set, so it cannot write to the store if it
    ever wakes up.
    """

    def __init__(
        self,
        engine: VerificationEngine,
        timeout: float = DEFAULT_STALL_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        on_poll: Optional[Callable[[], None]] = None,
    ) -> None:
        self.engine = engine
        self.progress = engine.progress
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.on_poll = on_poll
        self.state = WatchdogState.DONE
        self.last_retried: Optional[str] = None
        self.skipped: list[str] = []
        self._error: Optional[BaseException] = None
        self._launches = 0

    def _work(self, cancel: threading.Event) -> None:
        try:
            self.engine.drain(cancel)
        except ScanCancelled:
            pass
        except BaseException as e:  # re-raised by run() in the supervising thread
            if not cancel.is_set():
                self._error = e

    def _launch(self) -> tuple[threading.Event, threading.Thread]:
        self._launches += 1
        cancel = threading.Event()
        worker = threading.Thread(
            target=self._work,
            args=(cancel,),
            daemon=True,
            name=f"rotwatch-worker-{self._launches}",
        )
        self.progress.mark_read()
        worker.start()
        return cancel, worker

    def _recover(self) -> None:
        path = self.progress.take_in_flight()
        if path is None:
            logger.warning("worker stalled between files; restarting")
            return
        if path == self.last_retried:
            logger.warning(
                "Notice: %s stalled again after a retry. Skipping.", path
            )
            self.skipped.append(path)
            self.progress.finish_file(path, "stalled")
            self.last_retried = None
        else:
            logger.warning(
                "Notice: no read progress on %s for %.0fs. Retrying.",
                path, self.timeout,
            )
            self.engine.requeue(path)
            self.progress.add(retries=1)
            self.last_retried = path

    def run(self) -> None:
        self.state = WatchdogState.RUNNING
        cancel, worker = self._launch()
        while True:
            worker.join(self.poll_interval)
            if self.on_poll is not None:
                self.on_poll()
            if not worker.is_alive():
                break
            if self.progress.seconds_since_read() > self.timeout:
                self.state = WatchdogState.STALLED
                cancel.set()
                self._recover()
                cancel, worker = self._launch()
                self.state = WatchdogState.RUNNING
        self.state = WatchdogState.DONE
        if self._error is not None:
            raise self._error
