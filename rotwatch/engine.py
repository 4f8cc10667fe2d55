"""Verification engine — compare live files against the baseline and update it.

Decision rule per path, given the current iteration N:

    no record                      -> hash, insert at N                  (new)
    record.iteration >= N          -> already handled this run           (skipped)
    file gone since collection     -> notice only                        (vanished)
    same mtime, same hash          -> nothing to do                      (matched)
    same mtime, different hash     -> corruption alert, record untouched (alerts)
    different mtime                -> hash, overwrite hash/mtime/iter    (updated)

Alerted records are deliberately not rewritten: the alert repeats on every scan
until the mtime moves or the path is re-baselined with accept().
"""
from __future__ import annotations

import logging
import os
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from rotwatch.errors import DuplicatePath, ScanCancelled, StoreError
from rotwatch.hasher import DEFAULT_CHUNK_SIZE, hash_file
from rotwatch.progress import ScanProgress
from rotwatch.store import BaselineStore, FileRecord, utcnow

logger = logging.getLogger("rotwatch.engine")

# Outcome names double as ScanProgress counter names
NEW = "new"
UPDATED = "updated"
MATCHED = "matched"
ALERT = "alerts"
SKIPPED = "skipped"
VANISHED = "vanished"
ERROR = "errors"

Hasher = Callable[..., Optional[str]]


@dataclass
class CorruptionAlert:
    path: str
    expected_hash: str
    actual_hash: str
    mtime_ns: int
    iteration: int


@dataclass
class ScanResult:
    iteration: int
    stats: dict
    alerts: list[CorruptionAlert] = field(default_factory=list)
    stalled: list[str] = field(default_factory=list)


class VerificationEngine:
    def __init__(
        self,
        store: BaselineStore,
        progress: Optional[ScanProgress] = None,
        hasher: Hasher = hash_file,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.store = store
        self.progress = progress or ScanProgress()
        self.hasher = hasher
        self.chunk_size = chunk_size
        self.queue: deque[str] = deque()
        self.iteration = 0
        self.alerts: list[CorruptionAlert] = []
        self._alerts_lock = threading.Lock()

    def begin_iteration(self) -> int:
        self.iteration = self.store.bump_iteration()
        logger.info("starting iteration %d", self.iteration)
        return self.iteration

    def load(self, paths: Iterable[str]) -> None:
        self.queue.extend(paths)

    def requeue(self, path: str) -> None:
        self.queue.appendleft(path)

    # -- worker -----------------------------------------------------------------

    def drain(self, cancel: threading.Event) -> None:
        """Process queued paths until the queue is empty or cancel is set."""
        while not cancel.is_set():
            try:
                path = self.queue.popleft()
            except IndexError:
                return
            self.progress.begin_file(path)
            try:
                outcome = self.process(path, cancel)
            except ScanCancelled:
                raise
            except Exception as e:
                # One bad path must not end the scan
                logger.warning("unexpected error on %r: %s. Skipping.", path, e)
                outcome = ERROR
            self.progress.finish_file(path, outcome)

    def _hash(self, path: str, cancel: threading.Event) -> Optional[str]:
        digest = self.hasher(
            path, chunk_size=self.chunk_size, progress=self.progress, cancel=cancel
        )
        if digest is None:
            logger.info("Notice: unexpected error reading %s. Skipping.", path)
        return digest

    def process(self, path: str, cancel: threading.Event) -> str:
        """Apply the decision rule to one path and return the outcome name.

        Raises ScanCancelled if cancel is set before the result is written.
        """
        try:
            record = self.store.find_by_path(path)
        except StoreError as e:
            logger.warning("lookup failed for %s: %s", path, e)
            return ERROR

        if record is None:
            return self._create(path, cancel)
        if record.iteration >= self.iteration:
            # Another link to the same file was handled earlier this iteration
            return SKIPPED
        return self._compare(path, record, cancel)

    def _create(self, path: str, cancel: threading.Event) -> str:
        try:
            mtime_ns = os.stat(path).st_mtime_ns
        except FileNotFoundError:
            logger.info("Notice: %s disappeared before it could be read.", path)
            return VANISHED
        except OSError as e:
            logger.info("Notice: cannot stat %s: %s. Skipping.", path, e)
            return ERROR

        digest = self._hash(path, cancel)
        if digest is None:
            return ERROR

        record = FileRecord(
            path=path, content_hash=digest, mtime_ns=mtime_ns, iteration=self.iteration
        )
        with self.store.lock:
            if cancel.is_set():
                raise ScanCancelled(path)
            try:
                self.store.insert(record)
            except DuplicatePath as e:
                logger.warning("%s; skipping for this run", e)
                return ERROR
            except StoreError as e:
                logger.warning("insert failed for %s: %s", path, e)
                return ERROR
        return NEW

    def _compare(self, path: str, record: FileRecord, cancel: threading.Event) -> str:
        try:
            mtime_ns = os.stat(path).st_mtime_ns
        except FileNotFoundError:
            logger.info(
                "Notice: %s no longer exists; it was probably a transient file.", path
            )
            return VANISHED
        except OSError as e:
            logger.info("Notice: cannot stat %s: %s. Skipping.", path, e)
            return ERROR

        if mtime_ns == record.mtime_ns:
            # No intentional change, so the content must be identical
            digest = self._hash(path, cancel)
            if digest is None:
                return ERROR
            if cancel.is_set():
                raise ScanCancelled(path)
            if digest == record.content_hash:
                return MATCHED
            try:
                mtime_after = os.stat(path).st_mtime_ns
            except OSError:
                mtime_after = mtime_ns
            if mtime_after != mtime_ns:
                # Written to while we were hashing; an ordinary update
                return self._update(path, mtime_after, cancel)
            self._alert(path, record, digest)
            return ALERT

        return self._update(path, mtime_ns, cancel)

    def _update(self, path: str, mtime_ns: int, cancel: threading.Event) -> str:
        digest = self._hash(path, cancel)
        if digest is None:
            return ERROR
        with self.store.lock:
            if cancel.is_set():
                raise ScanCancelled(path)
            try:
                self.store.update(
                    path,
                    hash=digest,
                    mtime_ns=mtime_ns,
                    iteration=self.iteration,
                    updated_at=utcnow(),
                )
            except StoreError as e:
                logger.warning("update failed for %s: %s", path, e)
                return ERROR
        return UPDATED

    def _alert(self, path: str, record: FileRecord, digest: str) -> None:
        alert = CorruptionAlert(
            path=path,
            expected_hash=record.content_hash,
            actual_hash=digest,
            mtime_ns=record.mtime_ns,
            iteration=self.iteration,
        )
        with self._alerts_lock:
            self.alerts.append(alert)
        logger.critical(
            "!!! ALERT !!! Possible silent corruption on %s. "
            "The mtime is the same, but hash differs from record (%s != %s).",
            path, digest, record.content_hash,
        )


def accept(
    store: BaselineStore,
    path: str,
    iteration: Optional[int] = None,
    hasher: Hasher = hash_file,
) -> Optional[FileRecord]:
    """Re-baseline one path with its current content and mtime.

    Used to clear a corruption alert once the file has been checked by hand.
    Returns the stored record, or None if the file could not be read.
    """
    try:
        mtime_ns = os.stat(path).st_mtime_ns
    except OSError as e:
        logger.warning("cannot stat %s: %s", path, e)
        return None
    digest = hasher(path)
    if digest is None:
        logger.warning("cannot read %s", path)
        return None

    with store.lock:
        existing = store.find_by_path(path)
        if existing is None:
            store.insert(
                FileRecord(
                    path=path,
                    content_hash=digest,
                    mtime_ns=mtime_ns,
                    iteration=iteration if iteration is not None else store.get_iteration(),
                )
            )
        else:
            fields: dict = {"hash": digest, "mtime_ns": mtime_ns}
            if iteration is not None:
                fields["iteration"] = iteration
            store.update(path, **fields)
        return store.find_by_path(path)
