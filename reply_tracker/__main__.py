"""
Command-line entry point for running one pipeline stage as a batch job.

Usage:
    python -m reply_tracker thread
    python -m reply_tracker heuristic
    python -m reply_tracker classify --dry-run
    python -m reply_tracker init-db
"""

import argparse
import sys

from reply_tracker.config import settings
from reply_tracker.core.logging import configure_logging, get_logger

log = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reply_tracker",
        description="Match lender replies to loan submissions and classify them",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: LOG_LEVEL setting)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("thread", help="Match replies by In-Reply-To header")
    subparsers.add_parser("heuristic", help="Match unthreaded replies by sender and business name")
    classify = subparsers.add_parser("classify", help="Classify recent replies")
    classify.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Classify and log outcomes without writing to the database",
    )
    subparsers.add_parser("init-db", help="Create tables if they do not exist")
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    configure_logging(log_level=args.log_level or settings.log_level, json_output=settings.json_logs)

    try:
        if args.command == "init-db":
            from reply_tracker.core.database import Database

            settings.validate_for("store")
            Database().init_schema()
            log.info("batch_complete", command=args.command)
            return 0

        from reply_tracker.processors import build_processor

        processor = build_processor(args.command, dry_run=getattr(args, "dry_run", None))
        stats = processor.process()
    except Exception as e:
        log.error("batch_failed", command=args.command, error=str(e), exc_info=True)
        return 1

    log.info("batch_complete", command=args.command, **stats)
    return 0


if __name__ == "__main__":
    sys.exit(main())
