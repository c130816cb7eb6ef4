"""
Infrastructure Module

Key-value store adapters, the cache service and Prometheus metrics.
"""
