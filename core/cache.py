"""
Search result cache with TTL expiration.

This module implements a simple in-memory cache keyed by the raw query
string. Staleness is decided lazily when an entry is read:

- Entries older than the TTL are reported as misses
- Expired entries stay in the store until overwritten or cleared
- There is no size bound and no background sweep
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

DEFAULT_TTL = 3600


@dataclass
class CacheEntry:
    """A cached search result."""

    result: str
    timestamp: float  # Creation time (epoch seconds)


class SearchCache:
    """
    In-memory cache for search results with lazy TTL expiration.

    Attributes:
        cache: Dictionary mapping raw query strings to cache entries
        ttl: Time to live in seconds (default: 3600 seconds = 1 hour)
    """

    def __init__(self, ttl: int = DEFAULT_TTL, clock: Callable[[], float] = time.time) -> None:
        """
        Initialize cache with TTL.

        Args:
            ttl: Time to live in seconds. Default is 3600 (1 hour).
            clock: Function returning the current time in epoch seconds
        """
        self.cache: Dict[str, CacheEntry] = {}
        self.ttl = ttl
        self._clock = clock

    def get(self, query: str) -> Optional[str]:
        """
        Get cached result if it exists and hasn't expired.

        Expired entries are left in place.

        Args:
            query: Raw query string

        Returns:
            Cached result if found and not expired, None otherwise
        """
        entry = self.cache.get(query)
        if entry is None:
            return None

        if self._clock() - entry.timestamp < self.ttl:
            return entry.result

        return None

    def set(self, query: str, result: str) -> None:
        """
        Store a result with the current timestamp, replacing any existing entry.

        Args:
            query: Raw query string
            result: Result text to cache
        """
        self.cache[query] = CacheEntry(result=result, timestamp=self._clock())

    def delete(self, query: str) -> bool:
        """
        Remove a single entry.

        Returns:
            True if the entry existed
        """
        return self.cache.pop(query, None) is not None

    def clear(self) -> int:
        """
        Clear all cache entries.

        Returns:
            Number of entries removed
        """
        count = len(self.cache)
        self.cache.clear()
        return count

    @property
    def size(self) -> int:
        """Number of stored entries, expired ones included."""
        return len(self.cache)

    def __len__(self) -> int:
        return len(self.cache)

    def __contains__(self, query: object) -> bool:
        return query in self.cache

    def status(self) -> Dict[str, Any]:
        """
        Describe cache contents for status endpoints.

        Returns:
            Dictionary with totalEntries, ttlMinutes and per-entry details
            (query, UTC ISO timestamp, age in whole minutes, UTC ISO expiry time)
        """
        now = self._clock()
        ttl_minutes = self.ttl / 60
        if ttl_minutes.is_integer():
            ttl_minutes = int(ttl_minutes)

        entries: List[Dict[str, Any]] = []
        for query, entry in self.cache.items():
            entries.append(
                {
                    "query": query,
                    "timestamp": datetime.fromtimestamp(entry.timestamp, tz=timezone.utc).isoformat(),
                    "ageMinutes": int((now - entry.timestamp) // 60),
                    "expires": datetime.fromtimestamp(entry.timestamp + self.ttl, tz=timezone.utc).isoformat(),
                }
            )

        return {
            "totalEntries": len(self.cache),
            "ttlMinutes": ttl_minutes,
            "entries": entries,
        }
