"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), turns command-line
arguments into typed operation parameters, runs them through the client
facade and renders results and classified errors through the UserInterface.
Every handler returns a process exit code.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from compassone.core.client import CompassOneClient, Session
from compassone.domain.errors import (
    ApiError,
    ClientError,
    CompassOneError,
    RetryExhausted,
)
from compassone.domain.interfaces.user_interface import UserInterface
from compassone.domain.models.common import Parameters
from compassone.domain.models.config import ClientConfig
from compassone.domain.models.operation import OperationSpec
from compassone.domain.models.request import ApiResponse, Page

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


def coerce_value(spec: OperationSpec, name: str, raw: str) -> Any:
    """Converts a command-line string to the declared type of parameter ``name``."""
    param = spec.parameter(name)
    if param is None:
        raise ClientError(f"Unknown parameter for {spec.name}: {name}")
    try:
        if param.type is bool:
            lowered = raw.strip().lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ValueError(raw)
        if param.type in (int, float):
            return param.type(raw)
        if param.type in (list, dict):
            value = json.loads(raw)
            if not isinstance(value, param.type):
                raise ValueError(raw)
            return value
    except ValueError:
        raise ClientError(
            f"Parameter '{name}' of {spec.name} must be {param.type.__name__}; could not parse {raw!r}"
        ) from None
    return raw


def parse_parameters(spec: OperationSpec, pairs: Sequence[str]) -> Parameters:
    """Parses ``key=value`` arguments into typed parameters."""
    parameters: Parameters = {}
    for pair in pairs:
        name, sep, raw = pair.partition("=")
        if not sep or not name.strip():
            raise ClientError(f"Expected key=value, got {pair!r}")
        name = name.strip()
        parameters[name] = coerce_value(spec, name, raw)
    return parameters


def load_bulk_items(path: Path) -> List[Parameters]:
    """Reads bulk parameter sets from a JSON array or JSON-lines file."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ClientError(f"Cannot read bulk file {path}: {e}") from e
    stripped = text.strip()
    try:
        if stripped.startswith("["):
            items = json.loads(stripped)
        else:
            items = [json.loads(line) for line in stripped.splitlines() if line.strip()]
    except json.JSONDecodeError as e:
        raise ClientError(f"Bulk file {path} is not valid JSON: {e}") from e
    if not all(isinstance(item, dict) for item in items):
        raise ClientError(f"Every bulk item in {path} must be a JSON object")
    return items


class CommandHandler:
    """Handles incoming commands and delegates to the client facade."""

    def __init__(
        self,
        client: CompassOneClient,
        ui: UserInterface,
        config: Union[ClientConfig, Dict[str, Any], None] = None,
    ):
        self.client = client
        self.ui = ui
        self.config = config

    def _connect(self) -> Session:
        return self.client.connect(self.config)

    def report_error(self, error: CompassOneError) -> int:
        """Renders a classified error and returns the failure exit code."""
        if isinstance(error, RetryExhausted):
            last = error.last_error
            self.ui.display_error(
                f"{last.describe()}\nGave up after {error.attempts} attempt(s).",
                title=f"Retries exhausted ({last.kind.value})",
            )
        elif isinstance(error, ApiError):
            self.ui.display_error(error.describe(), title=f"API error ({error.kind.value})")
        else:
            self.ui.display_error(error.message, title=type(error).__name__)
        logger.debug(f"Command failed with {type(error).__name__}")
        return EXIT_FAILURE

    def _show(self, result: Any, title: str) -> None:
        if isinstance(result, Page):
            rows = [item if isinstance(item, dict) else {"value": item} for item in result.items]
            self.ui.display_table(rows, title=title)
            if result.next_token:
                self.ui.display_info("More results available; use 'list' to fetch every page.")
        elif isinstance(result, ApiResponse):
            if result.data is None:
                self.ui.display_info(f"{title}: HTTP {result.status} (no content)")
            else:
                self.ui.display_result(result.data, title=title)
        else:
            self.ui.display_result(result, title=title)

    # --- Commands ---

    def handle_operations(self) -> int:
        rows = [
            {
                "operation": spec.name,
                "method": spec.method,
                "path": spec.path,
                "paginated": "yes" if spec.paginated else "",
                "parameters": ", ".join(
                    p.name + ("*" if p.required else "") for p in spec.parameters
                ),
                "description": spec.description,
            }
            for spec in self.client.registry
        ]
        self.ui.display_table(rows, title="Operations (* = required)")
        return EXIT_OK

    async def handle_invoke(self, operation: str, pairs: Sequence[str], timeout: Optional[float] = None) -> int:
        logger.info(f"Handling 'invoke' command for operation: {operation}")
        try:
            spec = self.client.registry.get(operation)
            parameters = parse_parameters(spec, pairs)
            async with self._connect() as session:
                result = await self.client.invoke(session, spec, parameters, timeout=timeout)
        except CompassOneError as e:
            return self.report_error(e)
        self._show(result, operation)
        return EXIT_OK

    async def handle_list(self, operation: str, pairs: Sequence[str], max_pages: Optional[int] = None) -> int:
        logger.info(f"Handling 'list' command for operation: {operation}")
        try:
            spec = self.client.registry.get(operation)
            parameters = parse_parameters(spec, pairs)
            async with self._connect() as session:
                pages = self.client.iterate_pages(session, spec, parameters, max_pages=max_pages)
                items = await pages.collect()
        except CompassOneError as e:
            return self.report_error(e)
        rows = [item if isinstance(item, dict) else {"value": item} for item in items]
        self.ui.display_table(rows, title=f"{operation} ({len(rows)} items)")
        return EXIT_OK

    async def handle_bulk(self, operation: str, items_file: Path, timeout: Optional[float] = None) -> int:
        logger.info(f"Handling 'bulk' command for operation: {operation}")
        try:
            items = load_bulk_items(items_file)
            async with self._connect() as session:
                results = await self.client.invoke_many(session, operation, items, timeout=timeout)
        except CompassOneError as e:
            return self.report_error(e)

        rows = []
        for item in results:
            if item.ok:
                status = "ok"
                detail = getattr(item.value, "status", "")
            elif isinstance(item.error, RetryExhausted):
                status = item.error.last_error.kind.value
                detail = f"exhausted after {item.error.attempts} attempt(s)"
            elif isinstance(item.error, ApiError):
                status = item.error.kind.value
                detail = item.error.message
            else:
                status = "error"
                detail = str(item.error)
            rows.append({"#": item.index, "status": status, "detail": detail})
        self.ui.display_table(rows, title=f"Bulk {operation}")
        failed = sum(1 for item in results if not item.ok)
        if failed:
            self.ui.display_warning(f"{failed} of {len(results)} item(s) failed.")
            return EXIT_FAILURE
        self.ui.display_info(f"All {len(results)} item(s) succeeded.")
        return EXIT_OK

    async def handle_test_connection(self) -> int:
        try:
            async with self._connect() as session:
                healthy = await self.client.test_connection(session)
        except CompassOneError as e:
            return self.report_error(e)
        if healthy:
            self.ui.display_info(f"Connected to {session.config.base_url}.")
            return EXIT_OK
        self.ui.display_error(f"Could not reach {session.config.base_url}.", title="Connection failed")
        return EXIT_FAILURE

    async def handle_credential_status(self) -> int:
        try:
            async with self._connect() as session:
                await session.credentials.resolve()
                status = self.client.credential_status(session)
        except CompassOneError as e:
            return self.report_error(e)
        self.ui.display_result(dict(status), title="Credential status")
        if status["rotation_due"]:
            self.ui.display_warning("Credential is due for rotation.")
        return EXIT_OK

    async def handle_rotate_credential(self) -> int:
        try:
            async with self._connect() as session:
                status = await self.client.rotate_credential(session)
        except CompassOneError as e:
            return self.report_error(e)
        self.ui.display_result(dict(status), title="Credential rotated")
        return EXIT_OK
