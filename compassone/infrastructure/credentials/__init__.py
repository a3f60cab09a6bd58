"""Credential handling: secret store backends and the caching adapter.

Bounded Context: Credential Lifecycle
"""
