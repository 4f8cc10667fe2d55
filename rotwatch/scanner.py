"""Scan driver: collect the inventory, bump the iteration, drain under the watchdog."""
from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, Optional

from rotwatch.engine import Hasher, ScanResult, VerificationEngine
from rotwatch.hasher import DEFAULT_CHUNK_SIZE, hash_file
from rotwatch.inventory import collect_inventory
from rotwatch.progress import ScanProgress
from rotwatch.store import BaselineStore
from rotwatch.watchdog import DEFAULT_POLL_INTERVAL, DEFAULT_STALL_TIMEOUT, StallWatchdog

logger = logging.getLogger("rotwatch.scanner")


def run_polled(
    target: Callable[[], None],
    on_poll: Optional[Callable[[], None]] = None,
    interval: float = DEFAULT_POLL_INTERVAL,
    name: str = "rotwatch-task",
) -> None:
    """Run target in a thread, calling on_poll every interval until it exits.

    An exception raised by target is re-raised here.
    """
    errors: list[BaseException] = []

    def work() -> None:
        try:
            target()
        except BaseException as e:  # handed back to the caller below
            errors.append(e)

    worker = threading.Thread(target=work, daemon=True, name=name)
    worker.start()
    while worker.is_alive():
        worker.join(interval)
        if on_poll is not None:
            on_poll()
    if errors:
        raise errors[0]


def scan(
    store: BaselineStore,
    start_path: str,
    progress: Optional[ScanProgress] = None,
    skip_realpath: bool = False,
    exclude: Iterable[str] = (),
    exclude_paths: Iterable[str] = (),
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    stall_timeout: float = DEFAULT_STALL_TIMEOUT,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    hasher: Hasher = hash_file,
    on_collect_poll: Optional[Callable[[], None]] = None,
    on_poll: Optional[Callable[[], None]] = None,
) -> ScanResult:
    """Run one full iteration over start_path and return what it found."""
    progress = progress or ScanProgress()
    inventory: list[str] = []

    def collect() -> None:
        inventory.extend(
            collect_inventory(
                start_path,
                progress=progress,
                skip_realpath=skip_realpath,
                exclude=exclude,
                exclude_paths=exclude_paths,
            )
        )

    logger.info("Collecting inventory under %s", start_path)
    run_polled(collect, on_collect_poll, poll_interval, name="rotwatch-inventory")
    logger.info("Collected %d files", len(inventory))

    engine = VerificationEngine(store, progress=progress, hasher=hasher, chunk_size=chunk_size)
    iteration = engine.begin_iteration()
    engine.load(inventory)

    watchdog = StallWatchdog(
        engine, timeout=stall_timeout, poll_interval=poll_interval, on_poll=on_poll
    )
    watchdog.run()

    return ScanResult(
        iteration=iteration,
        stats=progress.snapshot(),
        alerts=list(engine.alerts),
        stalled=list(watchdog.skipped),
    )
