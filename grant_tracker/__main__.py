"""
CLI entry point for grant-tracker.

Usage:
    python -m grant_tracker serve --port 8080
    python -m grant_tracker search "youth mentoring" --category Youth
    python -m grant_tracker monitor
"""

import argparse
import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog

# Log level mapping
LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def setup_logging(level: str = "INFO", json_output: bool = False):
    """Configure structured logging (to stderr, stdout carries command output)."""
    log_level = LOG_LEVELS.get(level.upper(), logging.INFO)

    if json_output:
        processors = [
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="grant_tracker",
        description="Grant discovery and tracking service for nonprofits",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the HTTP API
  python -m grant_tracker serve --port 8080

  # One-off search printed as JSON
  python -m grant_tracker search "community health" --category Health

  # Refresh RSS feeds into the Apify key-value store
  GRANT_TRACKER_STORAGE=apify python -m grant_tracker monitor

  # Use custom settings file
  python -m grant_tracker --config /path/to/settings.yml serve
        """,
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to settings.yml (default: $GRANT_TRACKER_CONFIG or packaged settings)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON (for production)",
    )

    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, help="Bind address (default from settings)")
    serve.add_argument("--port", type=int, help="Port (default from settings)")

    search = subparsers.add_parser("search", help="Run one search and print JSON")
    search.add_argument("query", type=str, help="Search text")
    search.add_argument("--category", type=str)
    search.add_argument("--min-amount", type=str)
    search.add_argument("--max-amount", type=str)
    search.add_argument("--location", type=str)
    search.add_argument("--funder-type", type=str)
    search.add_argument(
        "--enhanced",
        action="store_true",
        help="Include RSS feeds and cached feed items",
    )
    search.add_argument("--fresh", action="store_true", help="Bypass the cache")

    subparsers.add_parser("monitor", help="Refresh RSS feeds into the store")

    return parser.parse_args(argv)


@asynccontextmanager
async def open_context(config) -> AsyncIterator["AppContext"]:
    """Build and start an AppContext for the configured storage backend."""
    from .context import AppContext

    if config.storage.backend == "apify":
        from apify import Actor

        from .storage.apify_store import ApifyKeyValueStore

        async with Actor:
            store = await ApifyKeyValueStore.open(config.storage.store_name)
            async with AppContext.create(config, store=store) as context:
                yield context
    else:
        async with AppContext.create(config) as context:
            yield context


def search_params(args) -> dict:
    """CLI arguments as request-style search parameters."""
    params = {
        "query": args.query,
        "category": args.category,
        "minAmount": args.min_amount,
        "maxAmount": args.max_amount,
        "location": args.location,
        "funderType": args.funder_type,
        "fresh": "true" if args.fresh else None,
    }
    return {k: v for k, v in params.items() if v is not None}


async def main_async(args) -> int:
    """Async main function; returns the exit code."""
    from .config.loader import load_config
    from .core.models import SearchFailed, SearchQuery
    from .monitor import FeedMonitor
    from .orchestrator import BASIC, ENHANCED, SearchOrchestrator
    from .web.server import run_server

    logger = structlog.get_logger(__name__)

    config = load_config(args.config)
    logger.info(
        "starting_grant_tracker",
        command=args.command,
        storage=config.storage.backend,
        adapters=len(config.adapters),
        feeds=len(config.feeds),
    )

    async with open_context(config) as context:
        if args.command == "serve":
            await run_server(context, args.host, args.port)
            return 0

        if args.command == "search":
            query = SearchQuery.from_params(search_params(args), include_rss_default=args.enhanced)
            outcome = await SearchOrchestrator(context).search(
                query, ENHANCED if args.enhanced else BASIC
            )
            print(json.dumps(outcome.payload, indent=2, ensure_ascii=False))
            return 1 if isinstance(outcome, SearchFailed) else 0

        if args.command == "monitor":
            summary = await FeedMonitor(context).run()
            print(json.dumps(summary, indent=2, ensure_ascii=False))
            return 0 if summary["failed"] < summary["totalFeeds"] or not summary["totalFeeds"] else 1

    return 2


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    # Version check
    if args.version:
        from . import __version__
        print(f"grant-tracker {__version__}")
        sys.exit(0)

    if not args.command:
        print("A command is required: serve, search or monitor", file=sys.stderr)
        sys.exit(2)

    # Setup logging
    setup_logging(args.log_level, args.json_logs)

    from .core.exceptions import GrantTrackerError

    try:
        sys.exit(asyncio.run(main_async(args)))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(130)
    except GrantTrackerError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(2 if e.status_code == 400 else 1)
    except Exception as e:
        logger = structlog.get_logger(__name__)
        logger.exception("fatal_error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
