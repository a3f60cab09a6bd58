"""Client Facade: the single entry point for talking to the CompassOne API.

``connect`` validates configuration and wires a Session (transport,
credential adapter, retry controller, request builder, response mapper and
optional response cache). ``invoke`` runs one operation through
build -> retry -> (credential -> transport -> map) and returns a typed result
or raises a classified error. Pagination, bulk invocation and credential
management are layered on top.
"""

import asyncio
import logging
import random
import time
import uuid
from dataclasses import dataclass, field
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Union,
)

from compassone.core.operations import OperationRegistry
from compassone.core.request_builder import RequestBuilder
from compassone.core.response_mapper import ResponseMapper
from compassone.domain.errors import (
    ClientError,
    CompassOneError,
    CredentialUnavailable,
    FatalError,
    TransportError,
)
from compassone.domain.interfaces.cache import CacheService
from compassone.domain.interfaces.event_sink import EventSink
from compassone.domain.interfaces.secret_store import SecretStore
from compassone.domain.interfaces.transport import Transport
from compassone.domain.models.common import CredentialStatus, Parameters
from compassone.domain.models.config import ClientConfig
from compassone.domain.models.operation import OperationSpec
from compassone.domain.models.request import (
    MAX_TIMEOUT_S,
    MIN_TIMEOUT_S,
    BulkItemResult,
    Page,
    RequestContext,
    Result,
)
from compassone.domain.models.retry import RetryPolicy
from compassone.infrastructure.cache.response_cache import ResponseCache, make_cache_key
from compassone.infrastructure.config.settings import load_client_config
from compassone.infrastructure.credentials.credential_store import CredentialStoreAdapter
from compassone.infrastructure.credentials.secret_stores import EnvironmentSecretStore
from compassone.infrastructure.monitoring.event_sink import LoggingEventSink
from compassone.infrastructure.resilience.rate_limiter import RateLimiter
from compassone.infrastructure.resilience.retry import RetryController
from compassone.infrastructure.transport.http_transport import HttpxTransport

logger = logging.getLogger(__name__)

TransportFactory = Callable[[ClientConfig, EventSink], Transport]
OperationRef = Union[str, OperationSpec]


def default_transport_factory(config: ClientConfig, event_sink: EventSink) -> Transport:
    """Builds the pooled, rate-limited httpx transport for a session."""
    limiter = RateLimiter(config.rate_limit_requests, config.rate_limit_window)
    return HttpxTransport(
        rate_limiter=limiter,
        max_connections=config.max_concurrent_operations,
        event_sink=event_sink,
        user_agent=config.user_agent,
    )


@dataclass
class Session:
    """A connected client session. Created by ``CompassOneClient.connect``."""
    config: ClientConfig
    policy: RetryPolicy
    transport: Transport
    credentials: CredentialStoreAdapter
    builder: RequestBuilder
    mapper: ResponseMapper
    retry: RetryController
    event_sink: EventSink
    cache: Optional[CacheService] = None
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    closed: bool = False

    async def close(self) -> None:
        """Releases cached credentials, cached responses and pooled connections. Idempotent."""
        if self.closed:
            return
        self.closed = True
        self.credentials.clear()
        if self.cache is not None:
            await self.cache.clear()
        await self.transport.close()
        logger.info(f"Session {self.session_id} disconnected.")

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class PageIterator:
    """Lazy sequence of pages. Every ``async for`` starts again from the first page."""

    def __init__(self, client: "CompassOneClient", session: Session, operation: OperationSpec,
                 parameters: Parameters, timeout: Optional[float], max_pages: Optional[int]):
        self._client = client
        self._session = session
        self._operation = operation
        self._parameters = dict(parameters)
        self._timeout = timeout
        self._max_pages = max_pages

    def __aiter__(self) -> AsyncIterator[Page]:
        return self._pages()

    async def _pages(self) -> AsyncIterator[Page]:
        token = None
        seen_tokens = set()
        count = 0
        while True:
            page = await self._client._invoke_spec(
                self._session, self._operation, self._parameters, self._timeout, continuation_token=token
            )
            count += 1
            yield page
            if not page.next_token:
                return
            if self._max_pages is not None and count >= self._max_pages:
                return
            if page.next_token in seen_tokens:
                raise FatalError(f"{self._operation.name}: server repeated continuation token; stopping pagination")
            seen_tokens.add(page.next_token)
            token = page.next_token

    async def items(self) -> AsyncIterator[Any]:
        """Flattens pages into their items."""
        async for page in self:
            for item in page.items:
                yield item

    async def collect(self) -> List[Any]:
        """Every item of every page, in order."""
        return [item async for item in self.items()]


class CompassOneClient:
    """Composes the client components into connect / invoke / disconnect.

    Args:
        secret_store: Backend for the API credential (environment by default).
        transport_factory: Builds the per-session transport.
        event_sink: Observability sink (a LoggingEventSink by default).
        registry: Known operations.
        sleep: Coroutine used for backoff waits.
        rng: Random source for jitter.
        clock: Epoch time source for credential expiry checks.
    """

    def __init__(
        self,
        secret_store: Optional[SecretStore] = None,
        transport_factory: Optional[TransportFactory] = None,
        event_sink: Optional[EventSink] = None,
        registry: Optional[OperationRegistry] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.secret_store = secret_store or EnvironmentSecretStore()
        self.transport_factory = transport_factory or default_transport_factory
        self.event_sink = event_sink or LoggingEventSink()
        self.registry = registry or OperationRegistry()
        self._sleep = sleep
        self._rng = rng
        self._clock = clock

    # --- Connect / disconnect ---

    def connect(self, config: Union[ClientConfig, Mapping[str, Any], str, None] = None) -> Session:
        """Validates configuration and creates a Session. Makes no network calls.

        Args:
            config: A ClientConfig, a mapping of its fields, an endpoint URL,
                or None to load settings from the environment/config files.

        Raises:
            ConfigurationError: Invalid or incomplete configuration.
        """
        if config is None:
            config = load_client_config()
        elif isinstance(config, str):
            config = ClientConfig(endpoint=config)
        elif not isinstance(config, ClientConfig):
            config = ClientConfig.from_mapping(dict(config))
        config.validate()
        policy = config.retry_policy()

        credentials = CredentialStoreAdapter(
            self.secret_store,
            config.credential_name,
            event_sink=self.event_sink,
            refresh_margin=config.credential_refresh_margin,
            rotation_period_days=config.credential_rotation_days,
            clock=self._clock,
        )
        session = Session(
            config=config,
            policy=policy,
            transport=self.transport_factory(config, self.event_sink),
            credentials=credentials,
            builder=RequestBuilder(
                config.base_url,
                config.api_version,
                registry=self.registry,
                default_page_size=config.default_page_size,
                user_agent=config.user_agent,
                extra_headers=config.extra_headers,
            ),
            mapper=ResponseMapper(clock=self._clock),
            retry=RetryController(credentials, self.event_sink, sleep=self._sleep, rng=self._rng),
            event_sink=self.event_sink,
            cache=ResponseCache(ttl=config.cache_expiration) if config.cache_enabled else None,
        )
        logger.info(
            f"Session {session.session_id} connected to {config.base_url} (API {config.api_version}, "
            f"max_attempts={policy.max_attempts}, timeout={config.timeout:g}s)"
        )
        return session

    async def disconnect(self, session: Session) -> None:
        await session.close()

    # --- Invoke ---

    async def invoke(
        self,
        session: Session,
        operation: OperationRef,
        parameters: Optional[Parameters] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Runs one operation and returns its typed result.

        Returns:
            ApiResponse for plain operations, Page (the first page) for
            paginated ones.

        Raises:
            ClientError: Unknown operation, invalid parameters or closed session.
            RetryExhausted: Retryable failures used up every attempt.
            ApiError: Any other non-retryable failure.
        """
        spec = session.builder.resolve(operation)
        return await self._invoke_spec(session, spec, dict(parameters or {}), timeout)

    async def _invoke_spec(
        self,
        session: Session,
        spec: OperationSpec,
        parameters: Parameters,
        timeout: Optional[float],
        continuation_token: Optional[str] = None,
    ) -> Any:
        if session.closed:
            raise ClientError(f"Session {session.session_id} is closed")
        effective_timeout = session.config.timeout if timeout is None else timeout
        if not MIN_TIMEOUT_S <= effective_timeout <= MAX_TIMEOUT_S:
            raise ClientError(f"timeout must be between {MIN_TIMEOUT_S:g} and {MAX_TIMEOUT_S:g} seconds")
        # Fail fast: invalid parameters never enter the retry loop.
        session.builder.validate(spec, parameters)

        cache_key = None
        if session.cache is not None and spec.idempotent:
            cache_key = make_cache_key(spec.name, parameters, continuation_token)
            cached = await session.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Cache hit for {spec.name}.")
                return cached

        context = RequestContext(
            operation=spec,
            parameters=parameters,
            timeout=float(effective_timeout),
            continuation_token=continuation_token,
        )
        value = await session.retry.execute(self._attempt_runner(session, context), session.policy, context)

        if session.cache is not None:
            if cache_key is not None:
                await session.cache.set(cache_key, value)
            elif not spec.idempotent:
                await session.cache.clear()
        return value

    def _attempt_runner(self, session: Session, context: RequestContext) -> Callable[[int], Awaitable[Result]]:
        """One attempt: rebuild the request, attach a fresh credential, send, map."""

        async def attempt(number: int) -> Result:
            request = session.builder.build(
                context.operation,
                context.parameters,
                continuation_token=context.continuation_token,
                request_id=context.request_id,
            )
            credential = await session.credentials.resolve()
            if credential.is_expired(self._clock()):
                raise CredentialUnavailable(f"Credential '{credential.identity}' expired before use")
            context.credential = credential
            try:
                response = await session.transport.send(
                    request.with_headers(credential.authorization_header()), context.timeout
                )
            except TransportError as e:
                logger.debug(f"{context.operation.name} attempt {number} transport failure: {type(e).__name__}")
                return Result.failure(session.mapper.map_transport_error(e, context.operation))
            return session.mapper.map(response, context.operation, context.request_id)

        return attempt

    # --- Pagination ---

    def iterate_pages(
        self,
        session: Session,
        operation: OperationRef,
        parameters: Optional[Parameters] = None,
        timeout: Optional[float] = None,
        max_pages: Optional[int] = None,
    ) -> PageIterator:
        """Lazy, restartable iteration over every page of a paginated operation."""
        spec = session.builder.resolve(operation)
        if not spec.paginated:
            raise ClientError(f"Operation {spec.name} is not paginated")
        return PageIterator(self, session, spec, dict(parameters or {}), timeout, max_pages)

    def iterate_items(
        self,
        session: Session,
        operation: OperationRef,
        parameters: Optional[Parameters] = None,
        timeout: Optional[float] = None,
        max_pages: Optional[int] = None,
    ) -> AsyncIterator[Any]:
        """Lazy iteration over the items of every page."""
        return self.iterate_pages(session, operation, parameters, timeout, max_pages).items()

    async def list_all(
        self,
        session: Session,
        operation: OperationRef,
        parameters: Optional[Parameters] = None,
        timeout: Optional[float] = None,
    ) -> List[Any]:
        return await self.iterate_pages(session, operation, parameters, timeout).collect()

    # --- Bulk ---

    async def invoke_many(
        self,
        session: Session,
        operation: OperationRef,
        parameter_sets: Iterable[Parameters],
        timeout: Optional[float] = None,
    ) -> List[BulkItemResult]:
        """Invokes ``operation`` once per parameter set with bounded concurrency.

        At most ``max_concurrent_operations`` calls are in flight. Each item
        gets the full retry and credential handling; a failing item is
        reported in its BulkItemResult and does not cancel the others.

        Raises:
            ClientError: More items than ``bulk_operation_limit``.
        """
        items = [dict(p) for p in parameter_sets]
        limit = session.config.bulk_operation_limit
        if len(items) > limit:
            raise ClientError(f"Bulk request of {len(items)} items exceeds the limit of {limit}")
        spec = session.builder.resolve(operation)
        semaphore = asyncio.Semaphore(session.config.max_concurrent_operations)

        async def run(index: int, params: Parameters) -> BulkItemResult:
            async with semaphore:
                value = await self._invoke_spec(session, spec, params, timeout)
                return BulkItemResult(index=index, parameters=params, value=value)

        outcomes = await asyncio.gather(
            *(run(i, params) for i, params in enumerate(items)), return_exceptions=True
        )
        results: List[BulkItemResult] = []
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, BulkItemResult):
                results.append(outcome)
                continue
            if not isinstance(outcome, Exception):
                raise outcome
            if not isinstance(outcome, CompassOneError):
                logger.error(f"Bulk item {index} of {spec.name} failed unexpectedly: {outcome!r}")
            results.append(BulkItemResult(index=index, parameters=items[index], error=outcome))
        failed = sum(1 for r in results if not r.ok)
        logger.info(f"Bulk {spec.name}: {len(results) - failed} succeeded, {failed} failed.")
        return results

    # --- Health & credentials ---

    async def test_connection(self, session: Session) -> bool:
        """True if the health endpoint answers successfully."""
        try:
            await self.invoke(session, "get_health")
        except CompassOneError as e:
            logger.warning(f"Connection test failed: {e}")
            return False
        return True

    async def rotate_credential(self, session: Session) -> CredentialStatus:
        """Rotates the credential in the secret store; returns the redacted status."""
        await session.credentials.rotate()
        return session.credentials.status()

    def credential_status(self, session: Session) -> CredentialStatus:
        return session.credentials.status()

    def metrics(self) -> Dict[str, int]:
        """Event counters, when the sink keeps them."""
        snapshot = getattr(self.event_sink, "snapshot", None)
        return snapshot() if callable(snapshot) else {}

