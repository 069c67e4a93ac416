"""
Command-line interface for Gemini search.

Main entry point for the CLI tool. Queries given in one run share a
cache and a history, so repeating a query is answered from the cache.
"""

import argparse
import asyncio
import logging
import sys
from typing import List

from core.config_loader import get_log_level, load_search_config
from core.exceptions import SearchError
from core.initializer import create_search_manager
from core.logger import RollingConsoleHandler, get_logger, setup_logger
from core.search_manager import GeminiSearchManager
from cli.output import ProgressDisplay, TextFormatter


def _close_rolling_console_handler() -> None:
    """
    Remove the RollingConsoleHandler so normal output is not overdrawn.

    Safe to call multiple times.
    """
    logger = logging.getLogger("gemini_search")
    handlers_removed = False
    for handler in logger.handlers[:]:
        if isinstance(handler, RollingConsoleHandler):
            handler.close()
            logger.removeHandler(handler)
            handlers_removed = True

    if handlers_removed:
        sys.stderr.write("\n")
        sys.stderr.flush()


class GeminiSearchCLI:
    """
    Command-line interface for Gemini search.

    Thin wrapper around GeminiSearchManager.
    """

    def __init__(self, manager: GeminiSearchManager) -> None:
        self.manager = manager
        self.logger = get_logger("gemini_search.cli")

    async def run_queries(
        self,
        queries: List[str],
        use_cache: bool,
        formatter: TextFormatter,
        progress_display: ProgressDisplay,
    ) -> int:
        """
        Run each query in order and print its result or error.

        Returns:
            Number of failed queries
        """
        failures = 0
        for query in queries:
            progress_display.show_search_start(query, use_cache)
            if use_cache and self.manager.cache.get(query) is not None:
                progress_display.show_cache_hit()

            try:
                result = await self.manager.execute(query, use_cache=use_cache)
            except SearchError as e:
                failures += 1
                print(formatter.format_error(query, e), file=sys.stderr)
                continue

            print(formatter.format_result(query, result))

        return failures


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="gemini-search",
        description="Search the web using Gemini CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  gemini-search "TypeScript 2024"
  gemini-search "Python 3.13 release" --no-cache
  gemini-search "rust async" "rust async" --history
        """,
    )

    parser.add_argument(
        "queries",
        nargs="+",
        metavar="QUERY",
        help="Search query (repeat to run several searches)",
    )

    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Do not read from or write to the result cache",
    )

    parser.add_argument(
        "--history",
        action="store_true",
        help="Print the search history after running the queries",
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser


async def main_async(args: argparse.Namespace) -> int:
    """
    Async main function.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 if any query failed)
    """
    config = load_search_config()
    log_level = logging.DEBUG if args.verbose else get_log_level(config)
    setup_logger(
        log_level=log_level,
        use_rolling_console=True,
        force_reconfigure=True,
    )

    try:
        cli = GeminiSearchCLI(create_search_manager(config))
        formatter = TextFormatter(color=not args.no_color and sys.stdout.isatty())
        progress_display = ProgressDisplay()

        failures = await cli.run_queries(
            queries=args.queries,
            use_cache=not args.no_cache,
            formatter=formatter,
            progress_display=progress_display,
        )

        _close_rolling_console_handler()

        if args.history:
            records = cli.manager.recent_history(limit=cli.manager.history.max_records)
            print(formatter.format_history(records))

        return 1 if failures else 0

    finally:
        _close_rolling_console_handler()


def main() -> int:
    """
    Main entry point for CLI.

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args()

    return asyncio.run(main_async(args))


if __name__ == "__main__":
    sys.exit(main())
