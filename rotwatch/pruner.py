"""Pruning engine — drop baseline records for files that no longer exist."""
from __future__ import annotations

import fnmatch
import logging
import os
from typing import Optional

from rotwatch.errors import StoreError
from rotwatch.progress import PruneProgress
from rotwatch.store import BaselineStore

logger = logging.getLogger("rotwatch.pruner")


def file_or_symlink_exists(path: str) -> bool:
    """True for existing files and for symlinks, dangling or not."""
    return os.path.lexists(path)


def prune(
    store: BaselineStore,
    pattern: str,
    progress: Optional[PruneProgress] = None,
) -> int:
    """Delete records whose path matches the shell glob and is gone from disk.

    Returns the number of records removed. The iteration counter is untouched.
    """
    progress = progress or PruneProgress()
    progress.set_total(store.count())
    pruned = 0
    for record in store.for_each():
        removed = False
        if fnmatch.fnmatchcase(record.path, pattern) and not file_or_symlink_exists(record.path):
            try:
                store.delete(record.id)
            except StoreError as e:
                logger.warning("could not prune %s: %s", record.path, e)
            else:
                logger.info("Pruned %s", record.path)
                pruned += 1
                removed = True
        progress.step(pruned=removed)
    logger.info("Done! Pruned %d records.", pruned)
    return pruned
