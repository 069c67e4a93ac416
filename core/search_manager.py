"""
Gemini search manager.

This module implements the orchestrator behind every search:
1. Validates the query
2. Checks the result cache (if use_cache is True)
3. Invokes the gemini executor on a miss
4. Stores successful results in the cache
5. Records every executed search in the history ledger
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from core.cache import SearchCache
from core.exceptions import SearchError, UnexpectedError
from core.gemini_executor import GeminiExecutor
from core.history import HistoryRecord, SearchHistory
from core.logger import get_logger
from core.validator import MAX_QUERY_LENGTH, validate_query


@dataclass
class SearchState:
    """
    Process-scoped search state.

    Created once at startup and handed to GeminiSearchManager. Nothing
    in it is persisted.
    """

    cache: SearchCache = field(default_factory=SearchCache)
    history: SearchHistory = field(default_factory=SearchHistory)


class GeminiSearchManager:
    """
    Search orchestrator.

    Attributes:
        state: Shared cache and history
        executor: GeminiExecutor used for cache misses
        max_query_length: Maximum accepted query length
        logger: Logger instance for logging
    """

    def __init__(
        self,
        state: Optional[SearchState] = None,
        executor: Optional[GeminiExecutor] = None,
        max_query_length: int = MAX_QUERY_LENGTH,
    ) -> None:
        self.state = state if state is not None else SearchState()
        self.executor = executor if executor is not None else GeminiExecutor()
        self.max_query_length = max_query_length
        self.logger = get_logger("gemini_search.search_manager")

    @property
    def cache(self) -> SearchCache:
        return self.state.cache

    @property
    def history(self) -> SearchHistory:
        return self.state.history

    async def execute(self, query: str, use_cache: bool = True) -> str:
        """
        Execute a web search.

        Validation failures are raised without being recorded. Every other
        outcome, cache hits included, appends one history record.

        Args:
            query: Search query string (used unmodified as cache key)
            use_cache: Whether to read from and write to the cache

        Returns:
            Search result text

        Raises:
            InvalidQuery: If the query fails validation
            GeminiNotFound: If the gemini executable is missing
            GeminiExecutionError: If gemini exits with a nonzero code
            UnexpectedError: If anything else fails during execution
        """
        validate_query(query, self.max_query_length)

        if use_cache:
            cached = self.cache.get(query)
            if cached is not None:
                self.logger.info(f"Using cached result for: {query}")
                self.history.append(HistoryRecord(query=query, success=True))
                return cached

        self.logger.info(f"Executing Gemini search for: {query} (cache: {use_cache})")

        try:
            result = await self.executor.invoke(query)
        except SearchError as e:
            self._record_failure(query, e)
            raise
        except Exception as e:
            error = UnexpectedError(str(e) or type(e).__name__)
            self._record_failure(query, error)
            raise error from e

        if use_cache:
            self.cache.set(query, result)

        self.history.append(HistoryRecord(query=query, success=True))
        return result

    def _record_failure(self, query: str, error: SearchError) -> None:
        self.logger.error(f"Search failed for {query}: {error.render()}")
        self.history.append(HistoryRecord(query=query, success=False, error=error.render()))

    def cache_status(self) -> Dict[str, Any]:
        """Get cache status for status endpoints."""
        return self.cache.status()

    def recent_history(self, limit: int = 10, include_errors: bool = True) -> List[Dict[str, Any]]:
        """Get recent history records as dictionaries, newest first."""
        return [r.to_dict() for r in self.history.recent(limit, include_errors)]

    def clear_one(self, query: str) -> bool:
        """
        Remove a single query from the cache.

        Returns:
            True if an entry was removed
        """
        removed = self.cache.delete(query)
        self.logger.info(f"Cleared cache for query: {query} (existed: {removed})")
        return removed

    def clear_all(self) -> int:
        """
        Remove every cache entry.

        Returns:
            Number of entries removed
        """
        count = self.cache.clear()
        self.logger.info(f"Cleared entire cache ({count} entries)")
        return count

    def clear_cache(self, query: Optional[str] = None) -> Union[bool, int]:
        """Clear one query if given, otherwise the whole cache."""
        if query:
            return self.clear_one(query)
        return self.clear_all()
