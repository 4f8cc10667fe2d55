"""CLI entry point — dispatches rotwatch subcommands."""
import argparse
import sys

from rotwatch.config import get_logging_config
from rotwatch.log import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rotwatch",
        description="Early warning detector for silent data corruption",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", dest="log_file", default=None,
                        help="Also append log records to this file")
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    # rotwatch scan
    p_scan = sub.add_parser("scan", help="Verify a tree against the baseline and update it")
    p_scan.add_argument("path", nargs="?", default=None,
                        help="Start path (default: scan.start_path, normally /)")
    p_scan.add_argument("db", nargs="?", default=None,
                        help="Database file (default: store.db_path, normally data.db)")
    p_scan.add_argument("mode", nargs="?", default=None, choices=["skip-realpath"],
                        help="'skip-realpath' records paths verbatim instead of resolving them")
    p_scan.add_argument("--skip-realpath", dest="skip_realpath", action="store_true",
                        help="Same as the skip-realpath positional")
    p_scan.add_argument("--quiet", action="store_true",
                        help="Suppress progress output (still prints final summary)")

    # rotwatch prune
    p_prune = sub.add_parser("prune", help="Remove records for files that no longer exist")
    p_prune.add_argument("pattern", nargs="?", default=None,
                         help="Shell glob the record path must match, e.g. '/data/*'")
    p_prune.add_argument("db", nargs="?", default=None, help="Database file")
    p_prune.add_argument("--quiet", action="store_true", help="Suppress progress output")

    # rotwatch status
    p_status = sub.add_parser("status", help="Show iteration and record counts")
    p_status.add_argument("db", nargs="?", default=None, help="Database file")

    # rotwatch accept
    p_accept = sub.add_parser("accept", help="Re-baseline a file after checking it by hand")
    p_accept.add_argument("path", help="File to re-baseline")
    p_accept.add_argument("db", nargs="?", default=None, help="Database file")
    p_accept.add_argument("--skip-realpath", dest="skip_realpath", action="store_true",
                          help="Use the path verbatim instead of resolving it")

    return parser


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    log_cfg = get_logging_config()
    setup_logging(
        level=log_cfg.get("level", "INFO"),
        log_file=args.log_file or log_cfg.get("file") or None,
        verbose=args.verbose,
    )

    try:
        if args.command == "scan":
            from rotwatch.commands.scan import cmd_scan
            cmd_scan(args)
        elif args.command == "prune":
            from rotwatch.commands.prune import cmd_prune
            cmd_prune(args)
        elif args.command == "status":
            from rotwatch.commands.status import cmd_status
            cmd_status(args)
        elif args.command == "accept":
            from rotwatch.commands.accept import cmd_accept
            cmd_accept(args)
        else:
            parser.print_help()
            sys.exit(1)
    except KeyboardInterrupt:
        sys.stderr.write("\n")
        sys.exit(130)


if __name__ == "__main__":
    main()
