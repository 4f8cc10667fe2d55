"""rotwatch scan — verify a tree against the baseline and record new/changed files."""

from __future__ import annotations

import os
import sys
import time

from rotwatch.commands import (
    format_duration,
    format_size,
    open_store,
    print_store_info,
    resolve_db_path,
)
from rotwatch.config import get_scan_config
from rotwatch.inventory import store_files
from rotwatch.progress import ScanProgress
from rotwatch.scanner import scan

SKIP_REALPATH = "skip-realpath"


def _terminal_columns() -> int:
    if sys.stderr.isatty():
        try:
            return os.get_terminal_size(sys.stderr.fileno()).columns
        except OSError:
            return 120
    return 120


def _print_collection_progress(progress: ScanProgress) -> None:
    snap = progress.snapshot()
    sys.stderr.write(
        f"\r\x1b[2KApproximately {snap['total_files']:,} files"
        f" ({format_size(snap['total_bytes'])}) to analyze."
    )
    sys.stderr.flush()


def _print_progress(
    progress: ScanProgress,
    scan_start: float,
    final: bool = False,
) -> None:
    snap = progress.snapshot()
    elapsed = time.time() - scan_start
    total_bytes = snap["total_bytes"]
    if total_bytes > 0:
        pct = min(100.0, snap["bytes_processed"] * 100.0 / total_bytes)
    else:
        pct = 100.0 if final else 0.0

    line = (
        f"Checked {snap['files_processed']:,} / {snap['total_files']:,} files"
        f" | {pct:.2f}%"
        f" ({format_size(snap['bytes_processed'])} / {format_size(total_bytes)})"
        f" | {format_duration(elapsed)} elapsed"
    )
    if snap["alerts"]:
        line += f" | {snap['alerts']:,} ALERTS"

    cols = _terminal_columns()
    current_file = snap["current_file"]
    if sys.stderr.isatty() and current_file and not final:
        room = cols - len(line) - 3
        if room > 10:
            # Keep the tail of the path so the filename is always visible
            shown = current_file if len(current_file) <= room else "..." + current_file[-(room - 3):]
            line += f" | {shown}"
    # Truncate to prevent wrapping: a wrapped line breaks the \r redraw
    if len(line) > cols - 1:
        line = line[: cols - 1]

    sys.stderr.write(f"\r\x1b[2K{line}")
    if final:
        sys.stderr.write("\n")
    sys.stderr.flush()


def _skip_realpath(args, cfg: dict) -> bool:
    return bool(
        getattr(args, "skip_realpath", False)
        or getattr(args, "mode", None) == SKIP_REALPATH
        or cfg.get("skip_realpath", False)
    )


def cmd_scan(args) -> None:
    cfg = get_scan_config()
    quiet = getattr(args, "quiet", False)

    start_path = getattr(args, "path", None) or cfg.get("start_path", "/")
    start_path = os.path.expanduser(start_path)
    db_path = resolve_db_path(getattr(args, "db", None))
    skip_realpath = _skip_realpath(args, cfg)
    chunk_size = int(cfg.get("chunk_size_kb", 16)) * 1024
    stall_timeout = float(cfg.get("stall_timeout", 5.0))
    poll_interval = float(cfg.get("poll_interval", 1.0))

    if not os.path.exists(start_path):
        print(f"rotwatch: no such file or directory: {start_path}", file=sys.stderr)
        sys.exit(2)

    if not quiet:
        print_store_info(db_path)
        print("Collecting Inventory . . .", file=sys.stderr)

    progress = ScanProgress()
    scan_start = time.time()
    on_collect_poll = None if quiet else (lambda: _print_collection_progress(progress))
    on_poll = None if quiet else (lambda: _print_progress(progress, scan_start))

    store = open_store(db_path)
    try:
        result = scan(
            store,
            start_path,
            progress=progress,
            skip_realpath=skip_realpath,
            exclude=cfg.get("exclude", []),
            exclude_paths=store_files(db_path),
            chunk_size=chunk_size,
            stall_timeout=stall_timeout,
            poll_interval=poll_interval,
            on_collect_poll=on_collect_poll,
            on_poll=on_poll,
        )
    finally:
        store.close()

    if not quiet:
        _print_progress(progress, scan_start, final=True)

    stats = result.stats
    print(
        f"\nDone! Checked the integrity of {stats['files_processed']:,} files"
        f" (iteration {result.iteration}): "
        f"{stats['new']:,} new, {stats['updated']:,} updated, "
        f"{stats['matched']:,} matched, {stats['skipped']:,} already checked, "
        f"{stats['vanished']:,} vanished, {stats['errors']:,} unreadable, "
        f"{stats['stalled']:,} stalled, "
        f"{format_duration(time.time() - scan_start)} elapsed.",
        file=sys.stderr,
    )
    if result.alerts:
        print(
            f"\n{len(result.alerts):,} file(s) may be silently corrupted"
            " (same mtime, different hash):",
            file=sys.stderr,
        )
        for alert in result.alerts:
            print(f"  {alert.path}", file=sys.stderr)
            print(f"    expected {alert.expected_hash}", file=sys.stderr)
            print(f"    actual   {alert.actual_hash}", file=sys.stderr)
        print(
            "Restore these from backup, or run 'rotwatch accept PATH' once verified.",
            file=sys.stderr,
        )
    else:
        print("No possible silent data corruption detected.", file=sys.stderr)
    if result.stalled:
        print("\nSkipped after repeated stalls:", file=sys.stderr)
        for path in result.stalled:
            print(f"  {path}", file=sys.stderr)
