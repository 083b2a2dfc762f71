"""Exception types raised by astrotransit."""

from __future__ import annotations

__all__ = ["InvalidInputError", "SearchDeadlineExceeded", "SourceUnavailableError"]


class InvalidInputError(ValueError):
    """Raised before any provider call when a request cannot be evaluated."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class SearchDeadlineExceeded(TimeoutError):
    """Raised inside a search once its batch deadline has passed."""


class SourceUnavailableError(RuntimeError):
    """Raised when the starting position of a search cannot be obtained."""

    def __init__(self, message: str, *, failure: object | None = None) -> None:
        super().__init__(message)
        self.failure = failure
