"""
Exception hierarchy for Gemini search errors.

Every failure of the search pipeline is represented by a SearchError
subclass carrying a ``kind`` and a ``detail``. The rendered form
``"<kind>: <detail>"`` is used for history records and display only.
"""

from typing import Optional, Tuple


REMEDIATION_HINTS = {
    "InvalidQuery": "Check the query: it must not be blank and must be at most 500 characters.",
    "GeminiNotFound": "Check that gemini-cli is installed and that the 'gemini' executable is on your PATH.",
    "GeminiExecutionError": "Check the gemini-cli output above; the CLI may need authentication or a valid configuration.",
    "Unexpected": "Check the server logs for details.",
}


class SearchError(Exception):
    """Base exception for search pipeline errors."""

    kind = "Unexpected"

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(self.render())

    def render(self) -> str:
        """Render error as 'Kind: detail'."""
        return f"{self.kind}: {self.detail}"

    @property
    def hint(self) -> str:
        """Static remediation hint for this error kind."""
        return REMEDIATION_HINTS.get(self.kind, REMEDIATION_HINTS["Unexpected"])

    def __str__(self) -> str:
        return self.render()


class InvalidQuery(SearchError):
    """Raised when the query fails validation."""

    kind = "InvalidQuery"


class GeminiNotFound(SearchError):
    """Raised when the gemini executable cannot be spawned."""

    kind = "GeminiNotFound"

    def __init__(
        self,
        detail: str = "gemini-cli not found. Please ensure it's installed and in your PATH.",
    ) -> None:
        super().__init__(detail)


class GeminiExecutionError(SearchError):
    """Raised when gemini exits with a nonzero code. Detail is its stderr."""

    kind = "GeminiExecutionError"

    def __init__(self, detail: str = "", exit_code: Optional[int] = None) -> None:
        self.exit_code = exit_code
        super().__init__(detail)


class UnexpectedError(SearchError):
    """Raised for any other failure during search execution."""

    kind = "Unexpected"


def parse_error_message(message: str) -> Tuple[str, str]:
    """
    Split a rendered error message into kind and detail.

    Args:
        message: Message in "Kind: detail" form

    Returns:
        (kind, detail) tuple. Messages without a separator are treated
        as Unexpected with the whole message as detail.
    """
    kind, sep, detail = message.partition(": ")
    if not sep or not kind or " " in kind:
        return "Unexpected", message
    return kind, detail
