"""
Search history ledger.

Keeps a bounded, insertion-ordered log of executed searches. When the
ledger grows past its cap the oldest record is dropped.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

MAX_HISTORY = 100


@dataclass
class HistoryRecord:
    """A single search execution."""

    query: str
    success: bool
    error: Optional[str] = None  # Rendered error message (only when failed)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to a JSON-serializable dictionary."""
        return {
            "query": self.query,
            "timestamp": self.timestamp.isoformat(),
            "success": self.success,
            "error": self.error,
        }


class SearchHistory:
    """
    Bounded FIFO history of search executions.

    Attributes:
        max_records: Maximum number of records kept (default: 100)
    """

    def __init__(self, max_records: int = MAX_HISTORY) -> None:
        if max_records < 1:
            raise ValueError("max_records must be at least 1")
        self.max_records = max_records
        self._records: List[HistoryRecord] = []

    def append(self, record: HistoryRecord) -> None:
        """Append a record, dropping the oldest one if over capacity."""
        self._records.append(record)
        if len(self._records) > self.max_records:
            self._records.pop(0)

    def recent(self, limit: int = 10, include_errors: bool = True) -> List[HistoryRecord]:
        """
        Get the most recent records, newest first.

        Args:
            limit: Maximum number of records to return
            include_errors: Whether to include failed searches

        Returns:
            List of records in reverse chronological order
        """
        if limit <= 0:
            return []

        records = self._records
        if not include_errors:
            records = [r for r in records if r.success]

        return list(reversed(records[-limit:]))

    @property
    def records(self) -> List[HistoryRecord]:
        """All records in chronological order (copy)."""
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)
