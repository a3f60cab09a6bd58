"""Error taxonomy for the CompassOne client.

Every failure a caller can observe is a ``CompassOneError``. Messages are
passed through ``redact`` on construction so credential material never ends
up in an exception string, traceback or log line.
"""

from enum import Enum
from typing import Any, Optional

from compassone.domain.redaction import redact


class ErrorKind(str, Enum):
    """Classification used by the retry controller to decide what to do."""

    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    AUTH_FAILURE = "auth_failure"
    CLIENT_ERROR = "client_error"
    FATAL = "fatal"


class CompassOneError(Exception):
    """Base class for all errors raised by this package."""

    def __init__(self, message: str):
        self.message = redact(message)
        super().__init__(self.message)


# --- Configuration ---

class ConfigurationError(CompassOneError):
    """Raised when client configuration is invalid. Never touches the network."""

    def __init__(self, message: str, field_name: Optional[str] = None):
        self.field_name = field_name
        super().__init__(message)


# --- Credentials ---

class CredentialError(CompassOneError):
    """Base class for credential lifecycle failures."""


class CredentialUnavailable(CredentialError):
    """The secret store could not supply a usable credential."""


class RotationFailed(CredentialError):
    """The secret store could not rotate the credential."""


# --- Transport (single attempt) ---

class TransportError(CompassOneError):
    """Base class for failures below the HTTP status level."""


class TransportTimeout(TransportError):
    """The request did not complete within its timeout and was aborted."""


class TransportConnectionError(TransportError):
    """Connection could not be established or was reset."""


class TlsError(TransportError):
    """TLS negotiation failed or the peer offered a protocol below TLS 1.2."""


# --- API errors ---

class ApiError(CompassOneError):
    """An error produced by mapping a response (or a failed attempt).

    Attributes:
        kind: The classification used for the retry decision.
        status: HTTP status code, when there was a response.
        attempts: Number of attempts made before this error surfaced.
        payload: Parsed error body, if any (never contains request headers).
    """

    kind: ErrorKind = ErrorKind.FATAL

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        payload: Any = None,
        attempts: int = 0,
    ):
        self.status = status
        self.payload = payload
        self.attempts = attempts
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind in (ErrorKind.TRANSIENT, ErrorKind.RATE_LIMITED)

    def describe(self) -> str:
        """One-line, user-facing summary: classification, attempts, redacted cause."""
        status = f" (HTTP {self.status})" if self.status is not None else ""
        attempts = f" after {self.attempts} attempt(s)" if self.attempts else ""
        return f"{self.kind.value}{status}{attempts}: {self.message}"


class TransientError(ApiError):
    """5xx responses, timeouts and connection resets."""

    kind = ErrorKind.TRANSIENT


class RateLimitedError(ApiError):
    """429 responses. ``retry_after`` is the server's hint in seconds, if any."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        status: Optional[int] = 429,
        payload: Any = None,
        attempts: int = 0,
    ):
        self.retry_after = retry_after
        super().__init__(message, status=status, payload=payload, attempts=attempts)


class AuthFailure(ApiError):
    """401/403 responses."""

    kind = ErrorKind.AUTH_FAILURE


class ClientError(ApiError):
    """Other 4xx responses and parameters rejected before sending."""

    kind = ErrorKind.CLIENT_ERROR


class FatalError(ApiError):
    """Malformed responses and protocol violations."""

    kind = ErrorKind.FATAL


class RetryExhausted(CompassOneError):
    """Raised when every allowed attempt failed with a retryable error."""

    def __init__(self, last_error: ApiError, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(
            f"Max attempts ({attempts}) exhausted. Last error: {last_error.describe()}"
        )
