import sys
from importlib import metadata
from pathlib import Path
from typing import Optional

from rotwatch.config import get_store_config, read_toml, tomllib
from rotwatch.errors import StoreUnavailable
from rotwatch.store import BaselineStore


def resolve_db_path(db_arg: Optional[str]) -> str:
    """Return the database path: CLI argument > ROTWATCH_DB_PATH > config."""
    return db_arg or get_store_config()["db_path"]


def open_store(db_path: str) -> BaselineStore:
    """Open the baseline store or exit 1 if it stays locked."""
    cfg = get_store_config()
    try:
        return BaselineStore(
            db_path,
            open_attempts=cfg.get("open_attempts", 5),
            retry_delay=cfg.get("retry_delay", 0.5),
        )
    except StoreUnavailable as e:
        print(f"rotwatch: cannot open database: {e}", file=sys.stderr)
        sys.exit(1)


def print_store_info(db_path: str) -> None:
    """Print version and database path to stderr (TTY only)."""
    if sys.stderr.isatty():
        print(f"rotwatch {get_version()}", file=sys.stderr)
        print(f"  database → {db_path}", file=sys.stderr)


def format_size(n: Optional[int]) -> str:
    if n is None:
        return "0 B"
    value = float(n)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if value < 1024:
            return f"{value:.1f} {unit}" if unit != "B" else f"{int(value)} B"
        value /= 1024
    return f"{value:.1f} PB"


def format_duration(seconds: float) -> str:
    s = int(seconds)
    h, rem = divmod(s, 3600)
    m, sec = divmod(rem, 60)
    if h:
        return f"{h}:{m:02d}:{sec:02d}"
    return f"{m}:{sec:02d}"


def get_version() -> str:
    """Version from the source checkout's pyproject.toml, else installed metadata."""
    pyproject = Path(__file__).resolve().parents[2] / "pyproject.toml"
    try:
        return read_toml(pyproject)["project"]["version"]
    except (OSError, KeyError, tomllib.TOMLDecodeError):
        pass
    try:
        return metadata.version("rotwatch")
    except metadata.PackageNotFoundError:
        return "unknown"
