"""Query validation for Gemini searches."""

from core.exceptions import InvalidQuery

MAX_QUERY_LENGTH = 500


def validate_query(query: str, max_length: int = MAX_QUERY_LENGTH) -> None:
    """
    Validate a search query.

    The query is not modified; callers use the original string as cache key.

    Args:
        query: Raw query string
        max_length: Maximum allowed length of the raw query

    Raises:
        InvalidQuery: If query is not a string, is blank, or is too long
    """
    if not isinstance(query, str):
        raise InvalidQuery(f"Query must be a string, got {type(query).__name__}")

    if not query.strip():
        raise InvalidQuery("Query cannot be empty")

    if len(query) > max_length:
        raise InvalidQuery(
            f"Query is too long ({len(query)} characters, maximum is {max_length})"
        )
