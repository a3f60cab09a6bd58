import pytest

from compassone.core.operations import OperationRegistry
from compassone.core.request_builder import RequestBuilder
from compassone.domain.errors import ClientError
from compassone.domain.models.operation import OperationSpec, ParameterSpec


@pytest.fixture
def builder():
    return RequestBuilder("https://api.compassone.test/", "2.3.1", default_page_size=25)


def test_get_with_path_parameter(builder):
    request = builder.build("get_asset", {"asset_id": "a/b 1"}, request_id="req-9")
    assert request.method == "GET"
    assert request.url == "https://api.compassone.test/v2/assets/a%2Fb%201"
    assert request.headers["X-Api-Version"] == "2.3.1"
    assert request.headers["X-Request-Id"] == "req-9"
    assert "Authorization" not in request.headers
    assert request.json_body is None


def test_paginated_query_uses_wire_names_and_default_page_size(builder):
    request = builder.build("list_findings", {"severity": "HIGH", "asset_id": "a1"}, continuation_token="tok-2")
    assert request.query == {"severity": "HIGH", "assetId": "a1", "pageSize": 25, "pageToken": "tok-2"}


def test_explicit_page_size_wins(builder):
    request = builder.build("list_assets", {"page_size": 500})
    assert request.query["pageSize"] == 500


def test_body_operations_send_json(builder):
    request = builder.build("create_asset", {"name": "db-01", "asset_class": "DEVICE", "tags": ["prod"]})
    assert request.method == "POST"
    assert request.json_body == {"name": "db-01", "assetClass": "DEVICE", "tags": ["prod"]}
    assert request.headers["Content-Type"] == "application/json"


@pytest.mark.parametrize("operation,params", [
    ("get_asset", {}),
    ("get_asset", {"asset_id": ""}),
    ("get_asset", {"asset_id": 42}),
    ("get_asset", {"asset_id": "a", "extra": 1}),
    ("list_assets", {"asset_class": "PLANET"}),
    ("list_assets", {"page_size": 0}),
    ("list_assets", {"page_size": True}),
    ("no_such_operation", {}),
])
def test_invalid_calls_fail_fast(builder, operation, params):
    with pytest.raises(ClientError):
        builder.build(operation, params)


def test_token_on_non_paginated_operation_is_rejected(builder):
    with pytest.raises(ClientError):
        builder.build("get_asset", {"asset_id": "a1"}, continuation_token="tok")


def test_custom_registry_and_query_booleans():
    registry = OperationRegistry([
        OperationSpec("search", "GET", "/search", parameters=(ParameterSpec("exact", bool),)),
    ])
    builder = RequestBuilder("https://api.compassone.test", "1.0.0", registry=registry)
    assert builder.build("search", {"exact": True}).query == {"exact": "true"}
    assert registry.names() == ["search"]
    with pytest.raises(ValueError):
        registry.register(OperationSpec("search", "GET", "/other"))


def test_default_registry_covers_the_api():
    registry = OperationRegistry()
    for name in ("get_health", "list_assets", "get_asset", "create_asset", "update_asset",
                 "delete_asset", "list_findings", "update_finding", "list_incidents", "get_incident"):
        assert name in registry
    assert registry.get("list_assets").paginated
    assert not registry.get("delete_asset").idempotent
