"""DuckDB baseline store: schema DDL, iteration counter, lock-serialized record helpers."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, TypeVar

import duckdb

from rotwatch.errors import DuplicatePath, StoreError, StoreUnavailable

logger = logging.getLogger("rotwatch.store")

T = TypeVar("T")

MEMORY = ":memory:"
DEFAULT_OPEN_ATTEMPTS = 5
DEFAULT_RETRY_DELAY = 0.5
_MAX_RETRY_DELAY = 5.0
_SCAN_BATCH = 5000

SCHEMA_SQL = """
CREATE SEQUENCE IF NOT EXISTS file_id_seq START 1;

CREATE TABLE IF NOT EXISTS meta (
    key     TEXT    NOT NULL UNIQUE,
    value   TEXT
);

CREATE TABLE IF NOT EXISTS files (
    id          BIGINT      PRIMARY KEY DEFAULT nextval('file_id_seq'),
    path        TEXT        NOT NULL UNIQUE,
    hash        TEXT        NOT NULL,
    mtime_ns    BIGINT      NOT NULL,
    iteration   BIGINT      NOT NULL,
    created_at  TIMESTAMP   NOT NULL,
    updated_at  TIMESTAMP   NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_files_path      ON files(path);
CREATE UNIQUE INDEX IF NOT EXISTS idx_files_path_hash ON files(path, hash);

INSERT INTO meta (key, value) VALUES ('iteration', '0') ON CONFLICT DO NOTHING;
"""

_COLUMNS = "id, path, hash, mtime_ns, iteration, created_at, updated_at"
_UPDATABLE = frozenset(["hash", "mtime_ns", "iteration", "updated_at"])


def utcnow() -> datetime:
    """Naive UTC timestamp for the TIMESTAMP columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class FileRecord:
    path: str
    content_hash: str
    mtime_ns: int
    iteration: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: Optional[int] = None

    @classmethod
    def from_row(cls, row: tuple) -> "FileRecord":
        return cls(
            id=row[0],
            path=row[1],
            content_hash=row[2],
            mtime_ns=row[3],
            iteration=row[4],
            created_at=row[5],
            updated_at=row[6],
        )


def _split_statements(sql: str) -> list[str]:
    """Split SQL on semicolons, preserving statement integrity."""
    return [s.strip() for s in sql.split(";") if s.strip()]


def _with_retry(
    fn: Callable[[], T],
    label: str,
    attempts: int,
    delay: float,
) -> T:
    """Call fn(), retrying duckdb.IOException with exponential backoff.

    Another process holding the database file lock surfaces as IOException.
    Raises StoreUnavailable once every attempt has failed.
    """
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except duckdb.IOException as e:
            if attempt == attempts:
                raise StoreUnavailable(
                    f"{label} failed after {attempts} attempts: {e}"
                ) from e
            logger.warning(
                "%s: store unavailable (%s), retrying in %.1fs [%d/%d]",
                label, e, delay, attempt, attempts,
            )
            time.sleep(delay)
            delay = min(delay * 2, _MAX_RETRY_DELAY)
    raise StoreUnavailable(f"{label}: no attempts made")


class BaselineStore:
    """The persisted baseline: a meta table holding the iteration counter and
    one files row per tracked path.

    A single connection is shared by every thread; `lock` serializes all
    access. It is re-entrant so callers can hold it across a check-then-write.
    """

    def __init__(
        self,
        db_path: str = "data.db",
        open_attempts: int = DEFAULT_OPEN_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> None:
        self.db_path = db_path
        self.open_attempts = max(1, int(open_attempts))
        self.retry_delay = retry_delay
        self.lock = threading.RLock()
        if db_path != MEMORY:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn: duckdb.DuckDBPyConnection | None = _with_retry(
            lambda: duckdb.connect(db_path),
            f"open {db_path}",
            self.open_attempts,
            self.retry_delay,
        )
        for stmt in _split_statements(SCHEMA_SQL):
            self._execute(stmt)

    # -- low-level helpers ----------------------------------------------------

    def _connection(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise StoreError(f"store {self.db_path} is closed")
        return self._conn

    def _run(self, label: str, fn: Callable[[duckdb.DuckDBPyConnection], T]) -> T:
        def call() -> T:
            with self.lock:
                return fn(self._connection())

        try:
            return _with_retry(call, label, self.open_attempts, self.retry_delay)
        except duckdb.ConstraintException:
            raise
        except duckdb.Error as e:
            raise StoreError(f"{label}: {e}") from e

    def _execute(self, sql: str, params: list[Any] | None = None) -> None:
        def fn(conn: duckdb.DuckDBPyConnection) -> None:
            if params:
                conn.execute(sql, params)
            else:
                conn.execute(sql)

        self._run(sql.split(None, 1)[0].lower(), fn)

    def _query(self, sql: str, params: list[Any] | None = None) -> list[tuple]:
        def fn(conn: duckdb.DuckDBPyConnection) -> list[tuple]:
            result = conn.execute(sql, params) if params else conn.execute(sql)
            return result.fetchall()

        return self._run("select", fn)

    def _query_one(self, sql: str, params: list[Any] | None = None) -> tuple | None:
        rows = self._query(sql, params)
        return rows[0] if rows else None

    # -- iteration counter ------------------------------------------------------

    def get_iteration(self) -> int:
        row = self._query_one("SELECT value FROM meta WHERE key = 'iteration'")
        return int(row[0]) if row and row[0] is not None else 0

    def set_iteration(self, value: int) -> None:
        if value < 0:
            raise ValueError(f"iteration must be non-negative, got {value}")
        self._execute(
            "UPDATE meta SET value = ? WHERE key = 'iteration'", [str(value)]
        )

    def bump_iteration(self) -> int:
        """Increment the global iteration counter and return the new value."""
        with self.lock:
            iteration = self.get_iteration() + 1
            self.set_iteration(iteration)
        return iteration

    # -- file records -----------------------------------------------------------

    def find_by_path(self, path: str) -> FileRecord | None:
        row = self._query_one(f"SELECT {_COLUMNS} FROM files WHERE path = ?", [path])
        return FileRecord.from_row(row) if row else None

    def insert(self, record: FileRecord) -> None:
        now = utcnow()
        created = record.created_at or now
        updated = record.updated_at or now
        try:
            self._execute(
                "INSERT INTO files (path, hash, mtime_ns, iteration, created_at, updated_at)"
                " VALUES (?, ?, ?, ?, ?, ?)",
                [record.path, record.content_hash, record.mtime_ns,
                 record.iteration, created, updated],
            )
        except duckdb.ConstraintException as e:
            raise DuplicatePath(record.path) from e

    def update(self, path: str, **fields: Any) -> None:
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"cannot update column(s): {', '.join(sorted(unknown))}")
        if not fields:
            return
        fields.setdefault("updated_at", utcnow())
        assignments = ", ".join(f"{col} = ?" for col in fields)
        try:
            self._execute(
                f"UPDATE files SET {assignments} WHERE path = ?",
                [*fields.values(), path],
            )
        except duckdb.ConstraintException as e:
            raise StoreError(f"update {path}: {e}") from e

    def delete(self, record_id: int) -> None:
        self._execute("DELETE FROM files WHERE id = ?", [record_id])

    def count(self) -> int:
        row = self._query_one("SELECT COUNT(*) FROM files")
        return int(row[0]) if row else 0

    def for_each(
        self,
        predicate: Callable[[FileRecord], bool] | None = None,
        batch_size: int = _SCAN_BATCH,
    ) -> Iterator[FileRecord]:
        """Yield every record (optionally filtered), paging by id.

        The lock is only held while fetching a page, so callers may delete
        the records they are handed.
        """
        last_id = -1
        while True:
            rows = self._query(
                f"SELECT {_COLUMNS} FROM files WHERE id > ? ORDER BY id LIMIT ?",
                [last_id, batch_size],
            )
            if not rows:
                return
            for row in rows:
                record = FileRecord.from_row(row)
                if predicate is None or predicate(record):
                    yield record
            last_id = rows[-1][0]

    def iteration_histogram(self) -> list[tuple[int, int]]:
        """Return (iteration, record count) pairs, newest first."""
        return [
            (int(it), int(n))
            for it, n in self._query(
                "SELECT iteration, COUNT(*) FROM files GROUP BY iteration ORDER BY iteration DESC"
            )
        ]

    def close(self) -> None:
        with self.lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> "BaselineStore":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
