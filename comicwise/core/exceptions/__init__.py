"""
Exception Module

Structured exception hierarchy for the ComicWise cache and rate-limit layer.

Module Structure:
-----------------
- **base.py**: ComicWiseError base class + ConfigurationError
- **cache.py**: Store and serialization exceptions
- **rate_limit.py**: Rate limiting exceptions

Usage:
------
```python
from comicwise.core.exceptions import CacheConnectionError, RateLimitExceededError
```
"""

from comicwise.core.exceptions.base import ComicWiseError, ConfigurationError
from comicwise.core.exceptions.cache import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
)
from comicwise.core.exceptions.rate_limit import RateLimitError, RateLimitExceededError

__all__ = [
    # Base
    "ComicWiseError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "CacheSerializationError",
    # Rate Limit
    "RateLimitError",
    "RateLimitExceededError",
]
