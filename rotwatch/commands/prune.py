"""rotwatch prune — remove baseline records for files that no longer exist."""

from __future__ import annotations

import sys
import time

from rotwatch.commands import format_duration, open_store, print_store_info
from rotwatch.config import get_scan_config
from rotwatch.progress import PruneProgress
from rotwatch.pruner import prune
from rotwatch.scanner import run_polled


def _print_progress(progress: PruneProgress, start: float) -> None:
    snap = progress.snapshot()
    elapsed = max(time.time() - start, 0.001)
    rate = snap["processed"] / elapsed
    sys.stderr.write(
        f"\r\x1b[2K{snap['processed']:,} / {snap['total']:,} processed."
        f" [{snap['pruned']:,} pruned]"
        f" | {rate:,.0f} rows/s"
        f" | {format_duration(elapsed)} elapsed"
    )
    sys.stderr.flush()


def cmd_prune(args) -> None:
    pattern = getattr(args, "pattern", None)
    db_path = getattr(args, "db", None)
    # Both arguments are required; without them there is nothing to do
    if not pattern or not db_path:
        return

    quiet = getattr(args, "quiet", False)
    poll_interval = float(get_scan_config().get("poll_interval", 1.0))

    if not quiet:
        print_store_info(db_path)

    progress = PruneProgress()
    start = time.time()
    result: dict = {}

    store = open_store(db_path)
    try:
        run_polled(
            lambda: result.update(pruned=prune(store, pattern, progress)),
            None if quiet else (lambda: _print_progress(progress, start)),
            poll_interval,
            name="rotwatch-prune",
        )
    finally:
        store.close()

    if not quiet:
        _print_progress(progress, start)
        sys.stderr.write("\n")
        sys.stderr.flush()

    print(
        f"Done! Pruned {result.get('pruned', 0):,} records"
        f" in {format_duration(time.time() - start)}.",
        file=sys.stderr,
    )
