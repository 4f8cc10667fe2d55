"""rotwatch accept — re-baseline a file after a corruption alert was checked by hand."""

from __future__ import annotations

import os
import sys

from rotwatch.commands import open_store, resolve_db_path
from rotwatch.engine import accept


def cmd_accept(args) -> None:
    raw = getattr(args, "path")
    path = raw if getattr(args, "skip_realpath", False) else os.path.realpath(raw)
    db_path = resolve_db_path(getattr(args, "db", None))

    store = open_store(db_path)
    try:
        previous = store.find_by_path(path)
        record = accept(store, path)
    finally:
        store.close()

    if record is None:
        print(f"rotwatch: cannot read {path}", file=sys.stderr)
        sys.exit(1)

    if previous is None:
        print(f"Added {path}")
    elif previous.content_hash == record.content_hash:
        print(f"Unchanged {path}")
    else:
        print(f"Accepted {path}")
        print(f"  was {previous.content_hash}")
    print(f"  now {record.content_hash}")
