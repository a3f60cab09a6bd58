"""Logging setup and the observability event sink."""
