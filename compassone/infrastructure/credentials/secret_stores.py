"""Concrete secret store backends.

- EnvironmentSecretStore: reads the API key from the environment / loaded
  settings (Kubernetes secrets are mounted as environment variables).
- InMemorySecretStore: dictionary backed, with an optional rotator; used for
  embedding and tests.
"""

import asyncio
import logging
import os
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from compassone.domain.errors import CredentialUnavailable, RotationFailed
from compassone.domain.interfaces.secret_store import SecretStore
from compassone.domain.models.credential import StoredSecret
from compassone.infrastructure.config.settings import get_config

logger = logging.getLogger(__name__)

EXPIRY_SUFFIX = "_EXPIRES_AT"
ISSUED_SUFFIX = "_ISSUED_AT"

Rotator = Callable[[str, Optional[StoredSecret]], Union[StoredSecret, Awaitable[StoredSecret]]]


def parse_timestamp(value: Any) -> Optional[float]:
    """Accepts epoch seconds or an ISO-8601 timestamp; returns epoch seconds."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    text = str(value).strip()
    try:
        return float(text)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as e:
        raise CredentialUnavailable(f"Unparseable credential timestamp: {text!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


class EnvironmentSecretStore(SecretStore):
    """Reads secrets from environment variables or loaded configuration.

    The secret named ``COMPASSONE_API_KEY`` is looked up as the environment
    variable of the same name, then as the config key ``compassone_api_key``.
    Optional ``<NAME>_EXPIRES_AT`` and ``<NAME>_ISSUED_AT`` give its expiry and
    the time it was issued.
    """

    @staticmethod
    def _companion(name: str, suffix: str) -> Optional[float]:
        raw = os.environ.get(name + suffix) or get_config((name + suffix).lower())
        return parse_timestamp(raw)

    async def get(self, name: str) -> Optional[StoredSecret]:
        value = os.environ.get(name) or get_config(name.lower())
        if not value:
            logger.debug(f"Secret '{name}' not present in environment or config.")
            return None
        return StoredSecret(
            value=str(value),
            expires_at=self._companion(name, EXPIRY_SUFFIX),
            issued_at=self._companion(name, ISSUED_SUFFIX),
        )

    async def set(self, name: str, secret: StoredSecret) -> None:
        os.environ[name] = secret.value
        for suffix, stamp in ((EXPIRY_SUFFIX, secret.expires_at), (ISSUED_SUFFIX, secret.issued_at)):
            if stamp is not None:
                os.environ[name + suffix] = str(stamp)
            else:
                os.environ.pop(name + suffix, None)

    async def rotate(self, name: str) -> StoredSecret:
        raise RotationFailed(
            f"Secret '{name}' is sourced from the environment and cannot be rotated in-process; "
            "rotate it in the backing secret manager and restart."
        )


class InMemorySecretStore(SecretStore):
    """Keeps secrets in a dictionary.

    Args:
        secrets: Initial secrets, as plain strings or StoredSecret values.
        rotator: Called with (name, current secret) to produce the replacement.
            May be sync or async. Without one, rotate() fails.
    """

    def __init__(
        self,
        secrets: Optional[Dict[str, Union[str, StoredSecret]]] = None,
        rotator: Optional[Rotator] = None,
    ):
        self._secrets: Dict[str, StoredSecret] = {}
        for name, value in (secrets or {}).items():
            self._secrets[name] = value if isinstance(value, StoredSecret) else StoredSecret(value=value)
        self._rotator = rotator
        self.get_calls = 0

    async def get(self, name: str) -> Optional[StoredSecret]:
        self.get_calls += 1
        return self._secrets.get(name)

    async def set(self, name: str, secret: StoredSecret) -> None:
        self._secrets[name] = secret

    async def rotate(self, name: str) -> StoredSecret:
        if self._rotator is None:
            raise RotationFailed(f"No rotator configured for secret '{name}'")
        try:
            produced = self._rotator(name, self._secrets.get(name))
            if asyncio.iscoroutine(produced) or isinstance(produced, asyncio.Future):
                produced = await produced
        except RotationFailed:
            raise
        except Exception as e:
            raise RotationFailed(f"Rotation of secret '{name}' failed: {type(e).__name__}") from e
        if not isinstance(produced, StoredSecret) or not produced.value:
            raise RotationFailed(f"Rotator returned no usable secret for '{name}'")
        self._secrets[name] = produced
        return produced
