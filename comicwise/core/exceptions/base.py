"""
Base Exception Class

The root of the ComicWise exception hierarchy plus ConfigurationError.
Themed exceptions live in their own modules (cache.py, rate_limit.py).
"""

from typing import Any


class ComicWiseError(Exception):
    """
    Base exception for all ComicWise cache and rate-limit errors.

    Attributes:
        message: Error message
        request_id: Request ID for correlation (if available)
        details: Additional error details (dict)

    Example:
        raise CacheConnectionError(
            "Failed to connect to Redis",
            details={"host": "localhost", "port": 6379},
        )
    """

    def __init__(
        self, message: str, request_id: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.request_id = request_id
        self.details = (details or {}).copy()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging/API responses.

        Returns:
            Dict with error_type, message, request_id, and details
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "request_id": self.request_id,
            "details": self.details,
        }

    def with_suggestion(self, suggestion: str) -> "ComicWiseError":
        """Attach a hint for resolving the error. Returns self for chaining."""
        self.details["suggestion"] = suggestion
        return self

    def with_context(self, **context) -> "ComicWiseError":
        """Merge extra key/value pairs into details. Returns self for chaining."""
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        request_id_str = f", request_id='{self.request_id}'" if self.request_id else ""
        return f"{self.__class__.__name__}(message='{self.message}'{request_id_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        message: str | None = None,
        request_id: str | None = None,
        **details
    ) -> "ComicWiseError":
        """
        Wrap a third-party exception, keeping its type and message in details.

        Example:
            >>> try:
            ...     await client.ping()
            ... except redis.ConnectionError as e:
            ...     raise CacheConnectionError.from_exception(e, host="localhost")
        """
        error_message = message or str(exc)
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details
        }
        return cls(error_message, request_id=request_id, details=error_details)


class ConfigurationError(ComicWiseError):
    """
    Raised when configuration is invalid or missing.

    Common causes:
    - Unknown CACHE_BACKEND value
    - Invalid environment variable values
    """
    pass
