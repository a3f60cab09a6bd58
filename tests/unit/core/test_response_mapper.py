import json
from email.utils import formatdate

import pytest

from compassone.core.operations import OperationRegistry
from compassone.core.response_mapper import ResponseMapper, parse_retry_after
from compassone.domain.errors import (
    AuthFailure,
    ClientError,
    FatalError,
    RateLimitedError,
    TlsError,
    TransientError,
    TransportTimeout,
)
from compassone.domain.models.request import ApiResponse, Page, WireResponse

registry = OperationRegistry()
GET_ASSET = registry.get("get_asset")
LIST_ASSETS = registry.get("list_assets")


def wire(status, payload=None, headers=None, raw=None):
    body = raw if raw is not None else (b"" if payload is None else json.dumps(payload).encode())
    return WireResponse(status=status, headers=headers or {}, body=body, elapsed_ms=3.0)


@pytest.fixture
def mapper():
    return ResponseMapper(clock=lambda: 1_700_000_000.0)


def test_success_maps_to_api_response(mapper):
    result = mapper.map(wire(200, {"id": "a1"}), GET_ASSET, "req-1")
    assert result.ok
    assert isinstance(result.value, ApiResponse)
    assert result.value.data == {"id": "a1"}
    assert result.value.request_id == "req-1"


def test_no_content(mapper):
    result = mapper.map(wire(204), registry.get("delete_asset"))
    assert result.ok and result.value.data is None and result.value.status == 204


def test_page_with_and_without_token(mapper):
    first = mapper.map(wire(200, {"items": [1, 2], "nextToken": "p2", "totalCount": 3}), LIST_ASSETS).value
    assert isinstance(first, Page)
    assert (first.items, first.next_token, first.total, first.has_more) == ([1, 2], "p2", 3, True)
    last = mapper.map(wire(200, {"items": [3], "nextToken": ""}), LIST_ASSETS).value
    assert last.next_token is None and not last.has_more


@pytest.mark.parametrize("status,kind", [
    (400, ClientError),
    (404, ClientError),
    (409, ClientError),
    (401, AuthFailure),
    (403, AuthFailure),
    (500, TransientError),
    (503, TransientError),
    (302, FatalError),
])
def test_status_classification(mapper, status, kind):
    result = mapper.map(wire(status, {"message": "nope"}), GET_ASSET)
    assert not result.ok
    assert type(result.error) is kind
    assert result.error.status == status


def test_error_detail_is_included(mapper):
    error = mapper.map(wire(422, {"error": {"message": "name too long"}}), GET_ASSET).error
    assert "name too long" in error.message
    assert error.payload == {"error": {"message": "name too long"}}


def test_rate_limited_reads_retry_after(mapper):
    error = mapper.map(wire(429, headers={"retry-after": "7"}), GET_ASSET).error
    assert isinstance(error, RateLimitedError)
    assert error.retry_after == 7.0


@pytest.mark.parametrize("raw", [b"<html>oops</html>", b"\xff\xfe"])
def test_unparseable_success_body_is_fatal(mapper, raw):
    result = mapper.map(wire(200, raw=raw), GET_ASSET)
    assert isinstance(result.error, FatalError)


@pytest.mark.parametrize("payload", [[1, 2], {"items": "nope"}, {"items": [], "nextToken": 5}])
def test_malformed_page_is_fatal(mapper, payload):
    assert isinstance(mapper.map(wire(200, payload), LIST_ASSETS).error, FatalError)


def test_parse_retry_after_formats():
    now = 1_700_000_000.0
    assert parse_retry_after(None) is None
    assert parse_retry_after("12") == 12.0
    assert parse_retry_after("-3") == 0.0
    assert parse_retry_after(formatdate(now + 30, usegmt=True), now=now) == pytest.approx(30.0)
    assert parse_retry_after("soon") is None


def test_transport_errors_are_classified():
    assert isinstance(ResponseMapper.map_transport_error(TransportTimeout("slow"), GET_ASSET), TransientError)
    assert isinstance(ResponseMapper.map_transport_error(TlsError("old tls"), GET_ASSET), FatalError)
