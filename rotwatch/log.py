"""Logging setup for the CLI."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"
DATE_FORMAT = "%H:%M:%S"


class ProgressAwareHandler(logging.StreamHandler):
    """StreamHandler that erases an in-place progress line before each record.

    The renderer redraws on its next tick, so log records never end up glued
    to the tail of a half-written status line.
    """

    def emit(self, record: logging.LogRecord) -> None:
        stream = self.stream
        if getattr(stream, "isatty", lambda: False)():
            try:
                stream.write("\r\x1b[2K")
            except (OSError, ValueError):
                pass
        super().emit(record)


def setup_logging(
    level: str | int = "INFO",
    log_file: Optional[str] = None,
    verbose: bool = False,
) -> None:
    """Configure the root logger: stderr always, plus log_file if given."""
    if verbose:
        level = logging.DEBUG
    elif isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handlers: list[logging.Handler] = [ProgressAwareHandler(sys.stderr)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
