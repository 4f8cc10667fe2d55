"""rotwatch status — show the baseline's iteration and record counts."""

from __future__ import annotations

from rotwatch.commands import open_store, resolve_db_path


def cmd_status(args) -> None:
    db_path = resolve_db_path(getattr(args, "db", None))
    store = open_store(db_path)
    try:
        iteration = store.get_iteration()
        total = store.count()
        histogram = store.iteration_histogram()
    finally:
        store.close()

    print()
    print(f"  {db_path}")
    print(f"  iteration {iteration}  ·  {total:,} records")
    print()

    if not histogram:
        return

    rows = [
        (f"{it}" + ("  (current)" if it == iteration else ""), f"{n:,}")
        for it, n in histogram
    ]
    it_w = max(len("written in"), max(len(label) for label, _ in rows))
    n_w = max(len("records"), max(len(n) for _, n in rows))
    print(f"  {'written in':<{it_w}}  {'records':>{n_w}}")
    print(f"  {'-' * it_w}  {'-' * n_w}")
    for label, n in rows:
        print(f"  {label:<{it_w}}  {n:>{n_w}}")
    print()
