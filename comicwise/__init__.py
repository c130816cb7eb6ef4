"""
ComicWise Cache & Rate-Limit Layer

Redis-backed (with in-memory fallback) caching, HTTP response caching and
fixed-window rate limiting for the ComicWise comic reader.
"""

__version__ = "1.0.0"
