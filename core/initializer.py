"""
Search manager initialization.

This module provides a common function for building the search manager
that is shared between MCP server and CLI.
"""

import logging
from typing import Any, Dict, Optional

from core.cache import SearchCache
from core.config_loader import load_search_config
from core.gemini_executor import GeminiExecutor
from core.history import SearchHistory
from core.logger import get_logger
from core.search_manager import GeminiSearchManager, SearchState


def create_search_manager(
    config: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
) -> GeminiSearchManager:
    """
    Build a GeminiSearchManager with fresh, empty state.

    Args:
        config: Search configuration (loaded from YAML if None)
        logger: Optional logger instance (if None, creates a new one)

    Returns:
        Configured GeminiSearchManager
    """
    if logger is None:
        logger = get_logger("gemini_search.initializer")
    if config is None:
        config = load_search_config()

    state = SearchState(
        cache=SearchCache(ttl=int(config["cache"]["ttl_seconds"])),
        history=SearchHistory(max_records=int(config["history"]["max_records"])),
    )
    executor = GeminiExecutor(executable=str(config["gemini"]["executable"]))

    logger.info(
        f"Search manager ready: executable={executor.executable}, "
        f"cache TTL={state.cache.ttl / 60:g} minutes, "
        f"history cap={state.history.max_records}"
    )

    return GeminiSearchManager(
        state=state,
        executor=executor,
        max_query_length=int(config["validation"]["max_query_length"]),
    )
