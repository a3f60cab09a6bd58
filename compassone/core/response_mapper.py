"""Response Mapper: turns wire responses into typed results or classified errors.

Status mapping:
    2xx + well-formed JSON -> ApiResponse / Page
    429                    -> RateLimitedError (Retry-After honoured)
    401, 403               -> AuthFailure
    other 4xx              -> ClientError
    5xx                    -> TransientError
    anything unparseable   -> FatalError

Paginated payloads have the shape ``{"items": [...], "nextToken": "<opaque>"}``;
an absent, null or empty ``nextToken`` marks the last page.
"""

import json
import logging
import time
from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Optional

from compassone.domain.errors import (
    ApiError,
    AuthFailure,
    ClientError,
    FatalError,
    RateLimitedError,
    TlsError,
    TransientError,
    TransportError,
)
from compassone.domain.models.common import ContinuationToken
from compassone.domain.models.operation import OperationSpec
from compassone.domain.models.request import ApiResponse, Page, Result, WireResponse

logger = logging.getLogger(__name__)

ITEMS_FIELD = "items"
NEXT_TOKEN_FIELD = "nextToken"
TOTAL_FIELDS = ("total", "totalCount")
RETRY_AFTER_HEADER = "Retry-After"


def parse_retry_after(value: Optional[str], now: Optional[float] = None) -> Optional[float]:
    """Parses a Retry-After header: delta-seconds or an HTTP-date.

    Returns:
        Seconds to wait (never negative), or None if absent/unparseable.
    """
    if not value:
        return None
    text = value.strip()
    try:
        return max(0.0, float(text))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        logger.debug(f"Ignoring unparseable Retry-After header: {text!r}")
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    current = time.time() if now is None else now
    return max(0.0, when.timestamp() - current)


def _error_detail(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        for key in ("message", "error", "detail", "title"):
            detail = payload.get(key)
            if isinstance(detail, str) and detail:
                return detail
            if isinstance(detail, dict) and isinstance(detail.get("message"), str):
                return detail["message"]
    return None


class ResponseMapper:
    """Maps WireResponses for an operation into Result values."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock

    def map(self, response: WireResponse, operation: OperationSpec, request_id: Optional[str] = None) -> Result:
        status = response.status
        if 200 <= status < 300:
            return self._map_success(response, operation, request_id)

        payload = self._safe_payload(response)
        detail = _error_detail(payload)
        message = f"{operation.name} returned HTTP {status}" + (f": {detail}" if detail else "")

        if status == 429:
            retry_after = parse_retry_after(response.header(RETRY_AFTER_HEADER), now=self._clock())
            return Result.failure(RateLimitedError(message, retry_after=retry_after, status=status, payload=payload))
        if status in (401, 403):
            return Result.failure(AuthFailure(message, status=status, payload=payload))
        if 400 <= status < 500:
            return Result.failure(ClientError(message, status=status, payload=payload))
        if 500 <= status < 600:
            return Result.failure(TransientError(message, status=status, payload=payload))
        return Result.failure(FatalError(f"{operation.name}: unexpected HTTP status {status}", status=status))

    def _map_success(self, response: WireResponse, operation: OperationSpec, request_id: Optional[str]) -> Result:
        if response.status == 204 or not response.body.strip():
            if operation.paginated:
                return Result.success(Page(operation=operation.name, items=[], request_id=request_id))
            return Result.success(ApiResponse(
                operation=operation.name,
                status=response.status,
                data=None,
                request_id=request_id,
                latency_ms=response.elapsed_ms,
            ))
        try:
            payload = response.json()
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            return Result.failure(FatalError(
                f"{operation.name}: response body is not valid JSON ({type(e).__name__})",
                status=response.status,
            ))

        if not operation.paginated:
            return Result.success(ApiResponse(
                operation=operation.name,
                status=response.status,
                data=payload,
                request_id=request_id,
                latency_ms=response.elapsed_ms,
            ))

        if not isinstance(payload, dict) or not isinstance(payload.get(ITEMS_FIELD), list):
            return Result.failure(FatalError(
                f"{operation.name}: paginated response lacks an '{ITEMS_FIELD}' list",
                status=response.status,
            ))
        token = payload.get(NEXT_TOKEN_FIELD)
        if token is not None and not isinstance(token, str):
            return Result.failure(FatalError(
                f"{operation.name}: '{NEXT_TOKEN_FIELD}' must be a string",
                status=response.status,
            ))
        total = next((payload[k] for k in TOTAL_FIELDS if isinstance(payload.get(k), int)), None)
        return Result.success(Page(
            operation=operation.name,
            items=payload[ITEMS_FIELD],
            next_token=ContinuationToken(token) if token else None,
            total=total,
            request_id=request_id,
            raw=payload,
        ))

    @staticmethod
    def _safe_payload(response: WireResponse) -> Any:
        if not response.body:
            return None
        try:
            return response.json()
        except (UnicodeDecodeError, json.JSONDecodeError):
            return response.body[:512].decode("utf-8", errors="replace")

    @staticmethod
    def map_transport_error(error: TransportError, operation: OperationSpec) -> ApiError:
        """Classifies a failed single attempt: TLS problems are fatal, the rest transient."""
        if isinstance(error, TlsError):
            return FatalError(f"{operation.name}: {error.message}")
        return TransientError(f"{operation.name}: {error.message}")
