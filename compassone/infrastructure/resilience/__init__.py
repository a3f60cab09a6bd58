"""API Resilience Implementations.

Contains services for pacing outgoing requests and for retries with
exponential backoff and jitter.
Bounded Context: API Resilience
"""
