from compassone.domain.errors import (
    AuthFailure,
    ClientError,
    CompassOneError,
    ErrorKind,
    FatalError,
    RateLimitedError,
    RetryExhausted,
    TransientError,
)
from compassone.domain.models.credential import Credential
from compassone.domain.redaction import REDACTED, redact, register_secret


def test_retryable_kinds():
    assert TransientError("x").retryable
    assert RateLimitedError("x", retry_after=3).retryable
    assert not AuthFailure("x").retryable
    assert not ClientError("x").retryable
    assert not FatalError("x").retryable


def test_kinds_are_classified():
    assert RateLimitedError("x").kind is ErrorKind.RATE_LIMITED
    assert RateLimitedError("x").status == 429
    assert AuthFailure("x", status=401).kind is ErrorKind.AUTH_FAILURE


def test_retry_exhausted_carries_last_error_and_attempts():
    last = TransientError("upstream down", status=503)
    error = RetryExhausted(last, 3)
    assert error.last_error is last
    assert error.attempts == 3
    assert "503" in str(error)
    assert isinstance(error, CompassOneError)


def test_registered_secrets_are_scrubbed_from_messages():
    register_secret("super-secret-value")
    error = FatalError("server echoed super-secret-value back")
    assert "super-secret-value" not in error.message
    assert REDACTED in error.message


def test_bearer_values_are_masked_even_when_unregistered():
    assert redact("Authorization: Bearer abc.def.ghi") == f"Authorization: Bearer {REDACTED}"


def test_short_values_are_not_registered():
    register_secret("abc")
    assert redact("abc") == "abc"


def test_credential_repr_hides_secret():
    credential = Credential(identity="KEY", secret="sk-live-very-secret")
    assert "sk-live-very-secret" not in repr(credential)
    assert "sk-live-very-secret" not in str(credential)
    assert credential.redacted() == {"identity": "KEY", "present": True, "expires_at": None}


def test_credential_expiry_and_refresh_margin():
    credential = Credential(identity="KEY", secret="s" * 10, expires_at=1000.0, issued_at=0.0)
    assert not credential.is_expired(now=999.0)
    assert credential.is_expired(now=1000.0)
    assert credential.needs_refresh(now=975.0, margin=30)
    assert not credential.needs_refresh(now=900.0, margin=30)
