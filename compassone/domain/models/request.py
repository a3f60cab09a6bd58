"""Domain models for a single API call: wire shapes, per-call context, results."""

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar

from compassone.domain.errors import ApiError
from compassone.domain.models.common import ContinuationToken, Parameters, RequestId
from compassone.domain.models.credential import Credential
from compassone.domain.models.operation import OperationSpec

T = TypeVar("T")

MIN_TIMEOUT_S, MAX_TIMEOUT_S = 1.0, 300.0


# --- Wire shapes ---

@dataclass(frozen=True)
class WireRequest:
    """An HTTP request ready for the transport, minus authentication."""
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    json_body: Optional[Any] = None

    def with_headers(self, extra: Dict[str, str]) -> "WireRequest":
        """Returns a copy with ``extra`` merged into the headers."""
        merged = dict(self.headers)
        merged.update(extra)
        return WireRequest(
            method=self.method,
            url=self.url,
            headers=merged,
            query=dict(self.query),
            json_body=self.json_body,
        )

    def __repr__(self) -> str:
        # Header values may carry credentials; only names are shown.
        return (
            f"WireRequest(method={self.method!r}, url={self.url!r}, "
            f"headers={sorted(self.headers)!r}, query={self.query!r})"
        )


@dataclass(frozen=True)
class WireResponse:
    """An HTTP response as received from the transport."""
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    elapsed_ms: Optional[float] = None

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8"))


# --- Per-call context ---

@dataclass
class RequestContext:
    """Everything needed to (re)build the request for one invocation.

    Created per call and discarded on completion; each attempt rebuilds its
    request from here, so nothing from a failed attempt leaks into the next.
    """
    operation: OperationSpec
    parameters: Parameters
    timeout: float
    continuation_token: Optional[ContinuationToken] = None
    attempt: int = 0
    request_id: RequestId = field(default_factory=lambda: RequestId(uuid.uuid4().hex))
    # Credential attached to the latest attempt; invalidated on auth failure.
    credential: Optional[Credential] = field(default=None, repr=False)


# --- Results ---

@dataclass
class ApiResponse:
    """Typed result of a non-paginated operation."""
    operation: str
    status: int
    data: Any
    request_id: Optional[str] = None
    latency_ms: Optional[float] = None


@dataclass
class Page:
    """One page of a paginated operation."""
    operation: str
    items: List[Any]
    next_token: Optional[ContinuationToken] = None
    total: Optional[int] = None
    request_id: Optional[str] = None
    raw: Any = field(default=None, repr=False)

    @property
    def has_more(self) -> bool:
        return self.next_token is not None


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of one attempt: a value or a classified error, never both."""
    value: Optional[T] = None
    error: Optional[ApiError] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ApiError) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


@dataclass
class BulkItemResult:
    """Per-item outcome of a bulk invocation."""
    index: int
    parameters: Parameters
    value: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None
