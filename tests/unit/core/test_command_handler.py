import json
from unittest.mock import MagicMock

import pytest

from compassone.core.command_handler import (
    EXIT_FAILURE,
    EXIT_OK,
    CommandHandler,
    coerce_value,
    load_bulk_items,
    parse_parameters,
)
from compassone.core.operations import OperationRegistry
from compassone.domain.errors import ClientError, RetryExhausted, TransientError
from compassone.domain.interfaces.user_interface import UserInterface
from compassone.domain.models.credential import StoredSecret
from compassone.infrastructure.credentials.secret_stores import InMemorySecretStore

registry = OperationRegistry()


@pytest.fixture
def mock_ui():
    return MagicMock(spec=UserInterface)


@pytest.fixture
def handler_for(make_client, mock_ui, config):
    def build(api_handler, **kwargs):
        return CommandHandler(client=make_client(api_handler, **kwargs), ui=mock_ui, config=config)

    return build


def test_parse_parameters_coerces_declared_types():
    spec = registry.get("create_asset")
    params = parse_parameters(spec, ["name=db-01", "asset_class=DEVICE", 'tags=["a","b"]', 'attributes={"os":"linux"}'])
    assert params == {"name": "db-01", "asset_class": "DEVICE", "tags": ["a", "b"], "attributes": {"os": "linux"}}
    assert parse_parameters(registry.get("list_assets"), ["page_size=20"]) == {"page_size": 20}


@pytest.mark.parametrize("pairs", [["novalue"], ["=x"], ["page_size=twenty"], ["unknown=1"]])
def test_parse_parameters_rejects_bad_input(pairs):
    with pytest.raises(ClientError):
        parse_parameters(registry.get("list_assets"), pairs)


def test_coerce_json_type_mismatch():
    with pytest.raises(ClientError):
        coerce_value(registry.get("create_asset"), "tags", '{"not": "a list"}')


def test_load_bulk_items_accepts_array_and_json_lines(tmp_path):
    array = tmp_path / "items.json"
    array.write_text(json.dumps([{"asset_id": "a1"}, {"asset_id": "a2"}]))
    lines = tmp_path / "items.jsonl"
    lines.write_text('{"asset_id": "a1"}\n\n{"asset_id": "a2"}\n')
    assert load_bulk_items(array) == load_bulk_items(lines) == [{"asset_id": "a1"}, {"asset_id": "a2"}]

    bad = tmp_path / "bad.json"
    bad.write_text("[1, 2]")
    with pytest.raises(ClientError):
        load_bulk_items(bad)


def test_handle_operations_lists_registry(handler_for, api, mock_ui):
    assert handler_for(api()).handle_operations() == EXIT_OK
    rows = mock_ui.display_table.call_args[0][0]
    assert {"get_asset", "list_assets"} <= {row["operation"] for row in rows}


@pytest.mark.asyncio
async def test_handle_invoke_displays_result(handler_for, api, respond, mock_ui):
    handler = handler_for(api([respond(200, {"id": "a1"})]))
    assert await handler.handle_invoke("get_asset", ["asset_id=a1"]) == EXIT_OK
    mock_ui.display_result.assert_called_once_with({"id": "a1"}, title="get_asset")


@pytest.mark.asyncio
async def test_handle_invoke_reports_classified_errors(handler_for, api, respond, mock_ui):
    handler = handler_for(api([respond(404, {"message": "no such asset"})]))
    assert await handler.handle_invoke("get_asset", ["asset_id=zz"]) == EXIT_FAILURE
    message = mock_ui.display_error.call_args[0][0]
    assert "no such asset" in message
    assert mock_ui.display_error.call_args[1]["title"] == "API error (client_error)"


@pytest.mark.asyncio
async def test_handle_invoke_unknown_operation(handler_for, api, mock_ui):
    assert await handler_for(api()).handle_invoke("launch_rocket", []) == EXIT_FAILURE
    mock_ui.display_error.assert_called_once()


def test_report_error_for_exhausted_retries(handler_for, api, mock_ui):
    handler = handler_for(api())
    code = handler.report_error(RetryExhausted(TransientError("upstream 503", status=503), 3))
    assert code == EXIT_FAILURE
    message = mock_ui.display_error.call_args[0][0]
    assert "3 attempt" in message
    assert mock_ui.display_error.call_args[1]["title"] == "Retries exhausted (transient)"


@pytest.mark.asyncio
async def test_handle_list_collects_all_pages(handler_for, api, respond, mock_ui):
    handler = handler_for(api([
        respond(200, {"items": [{"id": 1}], "nextToken": "n"}),
        respond(200, {"items": [{"id": 2}]}),
    ]))
    assert await handler.handle_list("list_assets", []) == EXIT_OK
    rows = mock_ui.display_table.call_args[0][0]
    assert rows == [{"id": 1}, {"id": 2}]


@pytest.mark.asyncio
async def test_handle_bulk_summarises_failures(handler_for, api, respond, mock_ui, tmp_path):
    items = tmp_path / "items.json"
    items.write_text(json.dumps([{"asset_id": "a1"}, {"asset_id": "a2"}]))
    handler = handler_for(api([respond(200, {}), respond(400, {"message": "bad"})]))

    assert await handler.handle_bulk("get_asset", items) == EXIT_FAILURE
    rows = mock_ui.display_table.call_args[0][0]
    assert sorted(row["status"] for row in rows) == ["client_error", "ok"]
    mock_ui.display_warning.assert_called_once()


@pytest.mark.asyncio
async def test_handle_test_connection(handler_for, api, respond, mock_ui):
    assert await handler_for(api([respond(200, {"status": "up"})])).handle_test_connection() == EXIT_OK
    assert await handler_for(api([respond(400)])).handle_test_connection() == EXIT_FAILURE


@pytest.mark.asyncio
async def test_credential_commands_never_show_the_secret(handler_for, api, mock_ui):
    store = InMemorySecretStore(
        {"COMPASSONE_API_KEY": "sk-status-secret-1234"},
        rotator=lambda name, current: StoredSecret("sk-rotated-secret-5678"),
    )
    handler = handler_for(api(), store=store)
    assert await handler.handle_credential_status() == EXIT_OK
    assert await handler.handle_rotate_credential() == EXIT_OK

    shown = str(mock_ui.display_result.call_args_list)
    assert "sk-status-secret" not in shown
    assert "sk-rotated-secret" not in shown
    assert "...5678" in shown


@pytest.mark.asyncio
async def test_rotate_failure_is_reported(handler_for, api, mock_ui):
    assert await handler_for(api()).handle_rotate_credential() == EXIT_FAILURE
    assert mock_ui.display_error.call_args[1]["title"] == "RotationFailed"
