"""
Rate Limiting Exceptions
"""

from typing import TYPE_CHECKING, Any

from comicwise.core.exceptions.base import ComicWiseError

if TYPE_CHECKING:
    from comicwise.rate_limiting.rate_limiter import RateLimitResult


class RateLimitError(ComicWiseError):
    """Base exception for rate limiting errors."""
    pass


class RateLimitExceededError(RateLimitError):
    """
    Raised when an identifier exceeds its window budget.

    Carries the RateLimitResult so the exception handler can render the
    X-RateLimit-* and Retry-After headers.
    """

    def __init__(
        self,
        message: str,
        result: "RateLimitResult | None" = None,
        request_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, request_id=request_id, details=details)
        self.result = result
