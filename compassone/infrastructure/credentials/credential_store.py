"""Credential Store Adapter.

Resolves, caches, invalidates and rotates the API credential on top of a
SecretStore backend. Refreshes are single-flight: while a fetch for an
identity is in progress, every other resolve for that identity awaits the
same task instead of hitting the backend again. Reads of a valid cached
credential take no lock at all.
"""

import asyncio
import logging
import time
from typing import Callable, Dict, Optional

from compassone.domain.errors import CredentialError, CredentialUnavailable, RotationFailed
from compassone.domain.events.api_events import CredentialInvalidated, CredentialRefreshed
from compassone.domain.interfaces.event_sink import EventSink, NullEventSink
from compassone.domain.interfaces.secret_store import SecretStore
from compassone.domain.models.common import CredentialStatus
from compassone.domain.models.credential import (
    DEFAULT_REFRESH_MARGIN_SECONDS,
    Credential,
    StoredSecret,
)
from compassone.domain.redaction import register_secret

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400
DEFAULT_ROTATION_DAYS = 90


class CredentialStoreAdapter:
    """Caching, single-flight front for a SecretStore.

    Args:
        store: Backend holding the secret.
        identity: Name of the secret to resolve.
        event_sink: Receives refresh/invalidate events (never secret values).
        refresh_margin: Seconds before a known expiry at which the cached
            credential is considered stale.
        rotation_period_days: Age after which status() reports rotation due.
        clock: Source of the current epoch time.
    """

    def __init__(
        self,
        store: SecretStore,
        identity: str,
        event_sink: Optional[EventSink] = None,
        refresh_margin: float = DEFAULT_REFRESH_MARGIN_SECONDS,
        rotation_period_days: int = DEFAULT_ROTATION_DAYS,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.identity = identity
        self.event_sink = event_sink or NullEventSink()
        self.refresh_margin = refresh_margin
        self.rotation_period_days = rotation_period_days
        self._clock = clock
        self._cache: Dict[str, Credential] = {}
        # Credentials that were already inside the refresh margin when fetched.
        self._best_available: Dict[str, Credential] = {}
        self._inflight: Dict[str, "asyncio.Task[Credential]"] = {}
        self.fetch_count = 0

    # --- Resolve ---

    async def resolve(self) -> Credential:
        """Returns a usable credential, fetching it if needed.

        Raises:
            CredentialUnavailable: The store has no usable credential.
        """
        cached = self._cache.get(self.identity)
        if cached is not None:
            now = self._clock()
            if not cached.needs_refresh(now, self.refresh_margin):
                return cached
            if cached is self._best_available.get(self.identity) and not cached.is_expired(now):
                return cached
        return await self._refresh(self.identity)

    async def _refresh(self, identity: str) -> Credential:
        task = self._inflight.get(identity)
        if task is None:
            task = asyncio.ensure_future(self._fetch(identity))
            self._inflight[identity] = task
            task.add_done_callback(lambda t, key=identity: self._on_fetch_done(key, t))
        else:
            logger.debug(f"Joining in-flight credential fetch for '{identity}'.")
        # Shielded so a cancelled caller does not abort the fetch other callers await.
        return await asyncio.shield(task)

    def _on_fetch_done(self, identity: str, task: "asyncio.Task[Credential]") -> None:
        if self._inflight.get(identity) is task:
            del self._inflight[identity]
        if not task.cancelled():
            # Marks the exception as retrieved even when every waiter was cancelled.
            task.exception()

    async def _fetch(self, identity: str) -> Credential:
        self.fetch_count += 1
        logger.debug(f"Fetching credential '{identity}' from {type(self.store).__name__}.")
        try:
            secret = await self.store.get(identity)
        except CredentialError:
            raise
        except Exception as e:
            raise CredentialUnavailable(
                f"Secret store failed to provide '{identity}': {type(e).__name__}"
            ) from e
        if secret is None or not secret.value:
            raise CredentialUnavailable(f"Credential '{identity}' is not present in the secret store")
        credential = self._store_credential(identity, secret)
        self.event_sink.publish(CredentialRefreshed(identity=identity, expires_at=credential.expires_at))
        return credential

    def _store_credential(self, identity: str, secret: StoredSecret) -> Credential:
        now = self._clock()
        credential = Credential(
            identity=identity,
            secret=secret.value,
            expires_at=secret.expires_at,
            issued_at=now if secret.issued_at is None else secret.issued_at,
        )
        register_secret(secret.value)
        if credential.is_expired(now):
            raise CredentialUnavailable(f"Credential '{identity}' from the secret store is already expired")
        if credential.needs_refresh(now, self.refresh_margin):
            # Nothing fresher is available; serve this one until it expires.
            logger.warning(f"Credential '{identity}' expires within {self.refresh_margin:g}s of being fetched.")
            self._best_available[identity] = credential
        else:
            self._best_available.pop(identity, None)
        self._cache[identity] = credential
        logger.info(f"Credential '{identity}' cached ({credential.redacted()}).")
        return credential

    # --- Invalidate / rotate / clear ---

    def invalidate(self, credential: Optional[Credential] = None) -> bool:
        """Drops the cached credential so the next resolve refetches.

        When ``credential`` is given, only that exact object is evicted; an
        invalidate for a credential that was already replaced is a no-op.

        Returns:
            True if a cached credential was removed.
        """
        cached = self._cache.get(self.identity)
        if cached is None:
            return False
        if credential is not None and cached is not credential:
            logger.debug(f"Ignoring stale invalidate for '{self.identity}'.")
            return False
        del self._cache[self.identity]
        self._best_available.pop(self.identity, None)
        logger.info(f"Credential '{self.identity}' invalidated.")
        return True

    def publish_invalidated(self, operation: Optional[str], request_id: Optional[str]) -> None:
        self.event_sink.publish(
            CredentialInvalidated(identity=self.identity, operation=operation, request_id=request_id)
        )

    async def rotate(self) -> Credential:
        """Asks the store for a new secret and caches it.

        Raises:
            RotationFailed: The store could not rotate the credential.
        """
        logger.info(f"Rotating credential '{self.identity}'.")
        try:
            secret = await self.store.rotate(self.identity)
        except RotationFailed:
            raise
        except Exception as e:
            raise RotationFailed(f"Rotation of '{self.identity}' failed: {type(e).__name__}") from e
        if secret is None or not secret.value:
            raise RotationFailed(f"Secret store returned no value when rotating '{self.identity}'")
        try:
            credential = self._store_credential(self.identity, secret)
        except CredentialUnavailable as e:
            raise RotationFailed(str(e)) from e
        self.event_sink.publish(
            CredentialRefreshed(identity=self.identity, expires_at=credential.expires_at, rotated=True)
        )
        return credential

    def clear(self) -> None:
        """Releases every cached credential."""
        self._cache.clear()
        self._best_available.clear()
        logger.debug("Credential cache cleared.")

    # --- Introspection ---

    def status(self) -> CredentialStatus:
        """Redacted view of the cache: presence, expiry, age, rotation due."""
        cached = self._cache.get(self.identity)
        now = self._clock()
        age = None if cached is None else max(0.0, now - cached.issued_at)
        rotation_due = age is not None and age >= self.rotation_period_days * SECONDS_PER_DAY
        return CredentialStatus(
            identity=self.identity,
            cached=cached is not None,
            expires_at=None if cached is None else cached.expires_at,
            age_seconds=age,
            rotation_due=rotation_due,
            present=cached is not None and bool(cached.secret),
        )
