"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .store_factory import FakeClock, StoreTestFactory

__all__ = ["FakeClock", "StoreTestFactory"]
