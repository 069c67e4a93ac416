"""
Text output formatter for CLI.

Provides colored text output for search results, errors and history.
"""

import sys
from typing import Any, Dict, List

from core.exceptions import SearchError


class TextFormatter:
    """
    Text formatter with colored output.

    Colors are disabled when color=False (e.g. output is piped).
    """

    RESET = "\033[0m"
    BOLD = "\033[1m"

    WHITE = "\033[97m"  # Headers
    LIGHT_GRAY = "\033[37m"  # Content
    DIM_GRAY = "\033[90m"  # Metadata, labels

    BLUE = "\033[94m"  # Queries
    GREEN = "\033[92m"  # Success
    YELLOW = "\033[93m"  # Hints
    RED = "\033[91m"  # Errors

    def __init__(self, color: bool = True) -> None:
        self.color = color

    def _c(self, code: str, text: str) -> str:
        if not self.color:
            return text
        return f"{code}{text}{self.RESET}"

    def format_result(self, query: str, result: str) -> str:
        """
        Format a search result.

        Args:
            query: Search query
            result: Result text from gemini

        Returns:
            Formatted string
        """
        header = self._c(self.BOLD + self.WHITE, "Search:") + " " + self._c(self.BLUE, query)
        separator = self._c(self.DIM_GRAY, "-" * 60)
        return f"{header}\n{separator}\n{result.rstrip()}\n"

    def format_error(self, query: str, error: SearchError) -> str:
        """Format a search error with its remediation hint."""
        lines = [
            self._c(self.RED, f"Error: {error.render()}"),
            self._c(self.DIM_GRAY, "Query: ") + query,
            self._c(self.YELLOW, f"Hint: {error.hint}"),
        ]
        return "\n".join(lines)

    def format_history(self, records: List[Dict[str, Any]]) -> str:
        """
        Format history records (newest first).

        Args:
            records: Records as produced by HistoryRecord.to_dict()

        Returns:
            Formatted string
        """
        if not records:
            return self._c(self.DIM_GRAY, "No search history.")

        lines = [self._c(self.BOLD + self.WHITE, f"Search history ({len(records)}):")]
        for record in records:
            status = self._c(self.GREEN, "ok  ") if record["success"] else self._c(self.RED, "fail")
            line = f"  {status} {self._c(self.DIM_GRAY, record['timestamp'])} {record['query']}"
            if record.get("error"):
                line += "\n       " + self._c(self.RED, record["error"])
            lines.append(line)
        return "\n".join(lines)


class ProgressDisplay:
    """Progress messages written to stderr."""

    DIM_GRAY = TextFormatter.DIM_GRAY
    BLUE = TextFormatter.BLUE
    LIGHT_GRAY = TextFormatter.LIGHT_GRAY
    RESET = TextFormatter.RESET

    def show_search_start(self, query: str, use_cache: bool) -> None:
        cache_note = "" if use_cache else " (cache disabled)"
        print(
            f"\n{self.BLUE}Searching{self.RESET} {self.LIGHT_GRAY}'{query}'{self.RESET} "
            f"{self.DIM_GRAY}with Gemini{cache_note}...{self.RESET}",
            file=sys.stderr,
        )

    def show_cache_hit(self) -> None:
        print(
            f"{self.DIM_GRAY}[Cache hit]{self.RESET} {self.LIGHT_GRAY}Returning cached result{self.RESET}",
            file=sys.stderr,
        )
