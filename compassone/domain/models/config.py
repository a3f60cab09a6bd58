"""Validated client configuration.

Replaces loose key/value settings with enumerated, range-checked fields that
are rejected eagerly, before any network activity.
"""

import re
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List

from compassone.domain.errors import ConfigurationError
from compassone.domain.models.retry import RetryPolicy

ENDPOINT_PATTERN = re.compile(r"^https?://[\w.-]+(?::\d+)?(?:/[\w.-]*)*$")
API_VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")

DEFAULT_USER_AGENT = "compassone-python/1.0.0"
DEFAULT_CREDENTIAL_NAME = "COMPASSONE_API_KEY"

# (field, minimum, maximum)
_RANGES = (
    ("timeout", 1, 300),
    ("max_retries", 1, 10),
    ("retry_delay", 1, 30),
    ("max_retry_delay", 1, 30),
    ("max_concurrent_operations", 1, 100),
    ("bulk_operation_limit", 1, 1000),
    ("default_page_size", 1, 1000),
    ("cache_expiration", 0, 86400),
    ("rate_limit_requests", 0, 100000),
    ("rate_limit_window", 0.001, 3600),
    ("credential_rotation_days", 1, 3650),
    ("credential_refresh_margin", 0, 3600),
)

_INTEGER_FIELDS = frozenset({
    "max_retries",
    "max_concurrent_operations",
    "bulk_operation_limit",
    "default_page_size",
    "rate_limit_requests",
    "credential_rotation_days",
})


@dataclass(frozen=True)
class ClientConfig:
    """Connection settings for a CompassOne session.

    ``max_retries`` is the total number of attempts per call (the first one
    included), matching the ``MaxRetries`` setting of the deployment config.
    ``rate_limit_requests`` of 0 disables client-side pacing.
    """

    endpoint: str
    api_version: str = "1.0.0"
    timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 2.0
    max_retry_delay: float = 30.0
    retry_jitter: bool = True
    max_concurrent_operations: int = 10
    bulk_operation_limit: int = 100
    default_page_size: int = 50
    cache_enabled: bool = True
    cache_expiration: float = 3600.0
    rate_limit_requests: int = 0
    rate_limit_window: float = 60.0
    credential_name: str = DEFAULT_CREDENTIAL_NAME
    credential_rotation_days: int = 90
    credential_refresh_margin: float = 30.0
    allow_insecure_http: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    extra_headers: Dict[str, str] = field(default_factory=dict, compare=False)

    def validate(self) -> "ClientConfig":
        """Checks every field; raises ConfigurationError on the first problem found."""
        errors = self.problems()
        if errors:
            name, message = errors[0]
            raise ConfigurationError(message, name)
        return self

    def problems(self) -> List[tuple]:
        """All validation problems as (field, message) pairs."""
        found = []
        if not isinstance(self.endpoint, str) or not ENDPOINT_PATTERN.fullmatch(self.endpoint):
            found.append(("endpoint", f"Invalid API endpoint URL: {self.endpoint!r}"))
        elif self.endpoint.startswith("http://") and not self.allow_insecure_http:
            found.append(("endpoint", "Plain http endpoints are refused; use https (TLS 1.2+)"))
        if not isinstance(self.api_version, str) or not API_VERSION_PATTERN.fullmatch(self.api_version):
            found.append(("api_version", f"Invalid API version {self.api_version!r}; expected MAJOR.MINOR.PATCH"))
        for name, low, high in _RANGES:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                found.append((name, f"{name} must be a number, got {value!r}"))
            elif name in _INTEGER_FIELDS and not float(value).is_integer():
                found.append((name, f"{name} must be a whole number, got {value!r}"))
            elif not low <= value <= high:
                found.append((name, f"{name} must be between {low} and {high}, got {value}"))
        if not found and self.max_retry_delay < self.retry_delay:
            found.append(("max_retry_delay", "max_retry_delay must not be below retry_delay"))
        if not self.credential_name:
            found.append(("credential_name", "credential_name must not be empty"))
        return found

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=int(self.max_retries),
            initial_delay=float(self.retry_delay),
            max_delay=float(self.max_retry_delay),
            jitter=bool(self.retry_jitter),
        )

    @property
    def base_url(self) -> str:
        return self.endpoint.rstrip("/")

    @classmethod
    def from_mapping(cls, values: Dict[str, Any]) -> "ClientConfig":
        """Builds a config from a plain mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        if "endpoint" not in values:
            raise ConfigurationError("API endpoint is not configured", "endpoint")
        return cls(**{k: v for k, v in values.items() if k in known})
