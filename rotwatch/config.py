"""rotwatch settings: built-in defaults < ~/.rotwatch.config (TOML) < env vars."""
from __future__ import annotations
import copy
import os
try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore[no-redef]  # Python < 3.11 backport
from pathlib import Path
from typing import Any

_DEFAULT: dict[str, Any] = {
    "scan": {
        "start_path": "/",
        "skip_realpath": False,
        "chunk_size_kb": 16,
        "stall_timeout": 5.0,
        "poll_interval": 1.0,
        "exclude": [],
    },
    "store": {
        "db_path": "data.db",
        "open_attempts": 5,
        "retry_delay": 0.5,
    },
    "logging": {
        "level": "INFO",
        "file": "",
    },
}

# env var -> (section, key)
_ENV_OVERRIDES = {
    "ROTWATCH_DB_PATH": ("store", "db_path"),
    "ROTWATCH_LOG_LEVEL": ("logging", "level"),
}


def read_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def overlay(target: dict, overrides: dict) -> dict:
    """Copy overrides onto target in place, descending into nested tables."""
    for key, val in overrides.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(val, dict):
            overlay(current, val)
        else:
            target[key] = copy.deepcopy(val)
    return target


def config_path() -> Path:
    explicit = os.environ.get("ROTWATCH_CONFIG_PATH")
    return Path(explicit) if explicit else Path.home() / ".rotwatch.config"


def load_config() -> dict[str, Any]:
    cfg = copy.deepcopy(_DEFAULT)
    path = config_path()
    if path.exists():
        overlay(cfg, read_toml(path))
    for var, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if value:
            cfg.setdefault(section, {})[key] = value
    return cfg


_loaded: dict[str, Any] | None = None


def get_config() -> dict[str, Any]:
    """Settings for this process; read from disk on first use only."""
    global _loaded
    if _loaded is None:
        _loaded = load_config()
    return _loaded


def reset_config() -> None:
    global _loaded
    _loaded = None


def get_scan_config() -> dict[str, Any]:
    return get_config()["scan"]


def get_store_config() -> dict[str, Any]:
    return get_config()["store"]


def get_logging_config() -> dict[str, Any]:
    return get_config()["logging"]
