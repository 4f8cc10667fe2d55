"""Exception types shared by the store, hasher and engines."""


class RotwatchError(Exception):
    """Base class for rotwatch errors."""


class StoreError(RotwatchError):
    """A baseline store operation failed."""


class DuplicatePath(StoreError):
    """Insert violated the unique constraint on files.path."""

    def __init__(self, path: str):
        super().__init__(f"record already exists for {path}")
        self.path = path


class StoreUnavailable(StoreError):
    """The database file stayed locked or unopenable for every retry."""


class ScanCancelled(Exception):
    """Raised inside a worker when its cancel token has been set."""
