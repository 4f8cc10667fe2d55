"""Inventory collection: walk the tree and build the canonical work list."""
from __future__ import annotations

import fnmatch
import logging
import os
import stat
import threading
from typing import Iterable, Optional

from rotwatch.progress import ScanProgress

logger = logging.getLogger("rotwatch.inventory")


def store_files(db_path: str) -> list[str]:
    """Paths of the database itself and its write-ahead log, for exclusion."""
    real = os.path.realpath(db_path)
    return [real, real + ".wal", os.path.abspath(db_path), os.path.abspath(db_path) + ".wal"]


def _is_excluded(path: str, patterns: tuple[str, ...]) -> bool:
    return any(fnmatch.fnmatchcase(path, p) for p in patterns)


def _onerror(e: OSError) -> None:
    # Unreadable directories are skipped, not fatal
    logger.debug("cannot read directory %s: %s", e.filename, e.strerror)


def collect_inventory(
    start_path: str,
    progress: Optional[ScanProgress] = None,
    skip_realpath: bool = False,
    exclude: Iterable[str] = (),
    exclude_paths: Iterable[str] = (),
    cancel: Optional[threading.Event] = None,
) -> list[str]:
    """
    Walk start_path once and return the files to verify, in traversal order.

    Only regular files are emitted. Unless skip_realpath is set, every entry is
    resolved to its real path and the list is deduplicated by path and by
    (device, inode), so symlinks and hard links to one file collapse to a
    single entry. Entries that cannot be resolved or stat'ed (broken symlinks,
    permission denied) are skipped silently, as are non-UTF-8 names, which
    the store cannot hold.
    exclude holds glob patterns; exclude_paths exact paths (the store files).
    Sizes come from stat; file contents are never read here.
    """
    patterns = tuple(exclude)
    skip_paths = set(exclude_paths)
    seen: dict[str, None] = {}
    # (st_dev, st_ino) of files already listed, so hard links collapse too
    seen_inodes: set[tuple[int, int]] = set()
    files: list[str] = []

    if os.path.isfile(start_path):
        walk = [(os.path.dirname(start_path), [], [os.path.basename(start_path)])]
    else:
        walk = os.walk(start_path, onerror=_onerror, followlinks=False)

    for dirpath, dirnames, filenames in walk:
        if cancel is not None and cancel.is_set():
            break
        if patterns:
            dirnames[:] = [
                d for d in dirnames
                if not _is_excluded(os.path.join(dirpath, d), patterns)
            ]

        for filename in filenames:
            raw_path = os.path.join(dirpath, filename)
            try:
                if skip_realpath:
                    path = raw_path
                else:
                    path = os.path.realpath(raw_path, strict=True)
                st = os.stat(path)
            except OSError as e:
                logger.debug("skipping %s: %s", raw_path, e)
                continue
            # Devices, FIFOs and sockets never reach EOF or block in open()
            if not stat.S_ISREG(st.st_mode):
                continue
            try:
                path.encode("utf-8")
            except UnicodeEncodeError:
                logger.info("Notice: %r is not a valid UTF-8 path. Skipping.", path)
                continue

            if path in skip_paths or raw_path in skip_paths:
                continue
            if _is_excluded(path, patterns) or _is_excluded(raw_path, patterns):
                continue
            if not skip_realpath:
                if path in seen:
                    continue
                inode_key = (st.st_dev, st.st_ino) if st.st_ino else None
                if inode_key is not None:
                    if inode_key in seen_inodes:
                        continue
                    seen_inodes.add(inode_key)
                seen[path] = None

            files.append(path)
            if progress is not None:
                progress.add(total_files=1, total_bytes=st.st_size)

    return files
