"""
Fixtures shared by the unit tests.

Every test runs against a config path that does not exist, so a developer's
~/.rotwatch.config never leaks in, and stores are in-memory DuckDB unless a
test needs a file on disk.
"""
import os

import pytest

from rotwatch.config import reset_config
from rotwatch.store import BaselineStore


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    monkeypatch.setenv("ROTWATCH_CONFIG_PATH", str(tmp_path / "missing.config"))
    monkeypatch.delenv("ROTWATCH_DB_PATH", raising=False)
    monkeypatch.delenv("ROTWATCH_LOG_LEVEL", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def store():
    """A fresh in-memory baseline store."""
    s = BaselineStore(":memory:")
    yield s
    s.close()


def write_file(path, content: bytes) -> str:
    """Write content to path (creating parents) and return it as a str."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return str(path)


def rewrite_keeping_mtime(path: str, content: bytes) -> None:
    """Replace the file's content but restore its original mtime exactly."""
    st = os.stat(path)
    with open(path, "wb") as f:
        f.write(content)
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns))


def bump_mtime(path: str, seconds: int = 10) -> None:
    st = os.stat(path)
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + seconds * 1_000_000_000))
