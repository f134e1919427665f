"""Dispatch error taxonomy for the offline write queue.

Dispatchers raise these to tell the queue what to do with a failed item:

- :class:`RetryableDispatchError` -- transient; counts toward the retry ceiling
- :class:`TerminalDispatchError`  -- will never succeed; drop immediately
- :class:`RateLimitedError`       -- back off without charging an attempt

Any other exception raised by a dispatcher is treated as retryable.
"""

from __future__ import annotations


class DispatchError(Exception):
    """Base class for failures reported by queue dispatchers.

    Attributes:
        status_code: HTTP status of the failed call, if there was one.
        message: A human-readable description.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class RetryableDispatchError(DispatchError):
    """Network failure, timeout or server error."""


class TerminalDispatchError(DispatchError):
    """Malformed or rejected request; retrying cannot help."""


class UnknownOperationError(TerminalDispatchError):
    """No dispatcher is registered for the queue item's type."""

    def __init__(self, item_type: str) -> None:
        self.item_type = item_type
        super().__init__(f"No dispatcher registered for {item_type!r}")


class RateLimitedError(DispatchError):
    """The server answered 429; wait ``retry_after`` seconds before draining again."""

    def __init__(self, retry_after: float, message: str | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message or f"Rate limited, retry after {retry_after:g}s", status_code=429)
