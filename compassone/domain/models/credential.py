"""Credential value object.

The secret value is kept out of ``repr``/``str`` and equality so it cannot
leak through logging, tracebacks or debug output.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

# Refresh this many seconds before a known expiry so a credential is never
# attached after it has expired in flight.
DEFAULT_REFRESH_MARGIN_SECONDS = 30.0


@dataclass(frozen=True)
class Credential:
    """An API key or bearer token plus optional expiry (epoch seconds)."""

    identity: str
    secret: str = field(repr=False, compare=False)
    expires_at: Optional[float] = None
    issued_at: float = field(default_factory=time.time)

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        current = time.time() if now is None else now
        return current >= self.expires_at

    def needs_refresh(self, now: Optional[float] = None, margin: float = DEFAULT_REFRESH_MARGIN_SECONDS) -> bool:
        """True when the credential is expired or inside the refresh margin."""
        if self.expires_at is None:
            return False
        current = time.time() if now is None else now
        return current >= self.expires_at - margin

    def authorization_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.secret}"}

    def redacted(self) -> Dict[str, Any]:
        """Presence and expiry only."""
        return {
            "identity": self.identity,
            "present": bool(self.secret),
            "expires_at": self.expires_at,
        }

    def __str__(self) -> str:
        return f"Credential(identity={self.identity!r}, expires_at={self.expires_at})"


@dataclass(frozen=True)
class StoredSecret:
    """What a secret store hands back: the raw value, optional expiry and
    the time the secret was issued (epoch seconds), when the backend knows it.
    """

    value: str = field(repr=False)
    expires_at: Optional[float] = None
    issued_at: Optional[float] = None
