"""Rate-limited HTTP transport built on httpx.

One pooled ``httpx.AsyncClient`` per session gives connection reuse. Every
connection negotiates TLS 1.2 or newer; anything older fails the handshake
before request data is written. ``send`` performs exactly one attempt and
enforces the per-call timeout strictly.
"""

import asyncio
import logging
import ssl
import time
from typing import Optional
from urllib.parse import urlsplit

import httpx

from compassone.domain.errors import TlsError, TransportConnectionError, TransportTimeout
from compassone.domain.events.api_events import ApiCallDeferred
from compassone.domain.interfaces.event_sink import EventSink, NullEventSink
from compassone.domain.interfaces.transport import Transport
from compassone.domain.models.request import WireRequest, WireResponse
from compassone.infrastructure.resilience.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

MINIMUM_TLS_VERSION = ssl.TLSVersion.TLSv1_2
_TLS_MARKERS = ("ssl", "tls", "certificate", "handshake")


def build_ssl_context(verify: bool = True) -> ssl.SSLContext:
    """Default-trust SSL context that refuses anything below TLS 1.2."""
    context = ssl.create_default_context()
    context.minimum_version = MINIMUM_TLS_VERSION
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def _is_tls_failure(exc: BaseException) -> bool:
    """Walks the exception chain looking for an SSL/TLS negotiation failure."""
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, ssl.SSLError):
            return True
        text = str(current).lower()
        if any(marker in text for marker in _TLS_MARKERS):
            return True
        current = current.__cause__ or current.__context__
    return False


class HttpxTransport(Transport):
    """Transport that paces requests through a RateLimiter and sends them with httpx.

    Args:
        rate_limiter: Optional client-side limiter; awaited before each send.
        max_connections: Upper bound of the connection pool.
        verify_tls: Verify server certificates (always on outside tests).
        event_sink: Receives ApiCallDeferred when the limiter delays a request.
        transport: Optional httpx transport (e.g. httpx.MockTransport in tests).
    """

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        max_connections: int = 10,
        verify_tls: bool = True,
        event_sink: Optional[EventSink] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        user_agent: Optional[str] = None,
    ):
        self.rate_limiter = rate_limiter
        self.event_sink = event_sink or NullEventSink()
        self.ssl_context = build_ssl_context(verify_tls)
        headers = {"User-Agent": user_agent} if user_agent else None
        self._client = httpx.AsyncClient(
            verify=self.ssl_context,
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_connections,
            ),
            transport=transport,
            headers=headers,
            follow_redirects=False,
            trust_env=False,
        )
        self._closed = False
        logger.debug(f"HttpxTransport initialized (pool={max_connections}, min TLS={MINIMUM_TLS_VERSION.name}).")

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, request: WireRequest, timeout: float) -> WireResponse:
        if self._closed:
            raise TransportConnectionError("Transport is closed")

        if self.rate_limiter is not None:
            waited = await self.rate_limiter.wait_for_permission()
            if waited > 0:
                self.event_sink.publish(ApiCallDeferred(
                    operation=f"{request.method} {urlsplit(request.url).path}",
                    wait_time_seconds=waited,
                    request_id=request.headers.get("X-Request-Id"),
                ))

        start_time = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._client.request(
                    request.method,
                    request.url,
                    params=request.query or None,
                    json=request.json_body,
                    headers=request.headers,
                    timeout=httpx.Timeout(timeout),
                ),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning(f"{request.method} {request.url} timed out after {timeout:g}s")
            raise TransportTimeout(f"Request timed out after {timeout:g}s") from e
        except httpx.TransportError as e:
            if _is_tls_failure(e):
                logger.error(f"TLS negotiation with {urlsplit(request.url).netloc} failed: {type(e).__name__}")
                raise TlsError(f"TLS negotiation failed (TLS 1.2+ required): {e}") from e
            logger.warning(f"{request.method} {request.url} connection error: {type(e).__name__}")
            raise TransportConnectionError(f"Connection error: {type(e).__name__}: {e}") from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"HTTP {request.method} {request.url} -> {response.status_code} ({latency_ms:.1f}ms)")
        return WireResponse(
            status=response.status_code,
            headers=dict(response.headers.items()),
            body=response.content,
            elapsed_ms=latency_ms,
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._client.aclose()
        logger.debug("HttpxTransport closed.")
