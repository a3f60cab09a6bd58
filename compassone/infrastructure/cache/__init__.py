"""Response caching implementations.

Provides an in-memory TTL cache for idempotent API responses.
"""
