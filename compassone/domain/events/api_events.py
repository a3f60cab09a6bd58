"""Domain Events related to API calls and resilience.

Examples include events for when calls are attempted, deferred, retried,
fail, or succeed, and for credential refreshes. Events never carry credential
values.
"""

from dataclasses import dataclass, field
import time
from typing import Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""

    @property
    def name(self) -> str:
        return type(self).__name__


# --- Attempt lifecycle ---

@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when an attempt is about to be sent."""
    operation: str
    attempt_number: int
    request_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when an attempt succeeds."""
    operation: str
    attempt_number: int
    latency_ms: float
    status: Optional[int] = None
    request_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when a call fails definitively with a non-retryable error."""
    operation: str
    attempt_number: int
    error_kind: str
    error_message: str
    status: Optional[int] = None
    request_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallDeferred(DomainEvent):
    """Event triggered when an attempt is deferred by client-side rate limiting."""
    operation: str
    wait_time_seconds: float
    request_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed attempt."""
    operation: str
    attempt_number: int
    delay_seconds: float
    error_kind: str
    request_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetriesExhausted(DomainEvent):
    """Event triggered when every allowed attempt failed with a retryable error."""
    operation: str
    attempts: int
    error_kind: str
    error_message: str
    request_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


# --- Credential lifecycle ---

@dataclass
class CredentialRefreshed(DomainEvent):
    """Event triggered when a credential was fetched from the secret store."""
    identity: str
    expires_at: Optional[float] = None
    rotated: bool = False
    timestamp: float = field(default_factory=time.time)


@dataclass
class CredentialInvalidated(DomainEvent):
    """Event triggered when an auth failure forces the credential to be refetched."""
    identity: str
    operation: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
