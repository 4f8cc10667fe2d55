"""SHA-256 content hashing with liveness reporting."""
from __future__ import annotations

import hashlib
import threading
from typing import Optional

from rotwatch.errors import ScanCancelled
from rotwatch.progress import ScanProgress

HASH_ALGORITHM = "sha256"
DEFAULT_CHUNK_SIZE = 16 * 1024  # 16 KB


def hash_file(
    path: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress: Optional[ScanProgress] = None,
    cancel: Optional[threading.Event] = None,
) -> Optional[str]:
    """
    Compute the hex digest of a file.
    Returns None on PermissionError or OSError (caller should log).
    Raises ScanCancelled if cancel is set before a chunk is read.
    """
    h = hashlib.new(HASH_ALGORITHM)
    try:
        with open(path, "rb") as f:
            while True:
                if cancel is not None and cancel.is_set():
                    raise ScanCancelled(path)
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                h.update(chunk)
                if progress is not None:
                    progress.mark_read(len(chunk))
        return h.hexdigest()
    except PermissionError:
        return None
    except OSError:
        return None
