"""Main entry point for the compassone CLI.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Coroutine, Dict, List, Optional

import typer
from typing_extensions import Annotated

from compassone.core.client import CompassOneClient
from compassone.core.command_handler import CommandHandler
from compassone.domain.errors import CompassOneError
from compassone.infrastructure.cli.display import ConsoleDisplay
from compassone.infrastructure.config.settings import get_config, load_client_config, load_configuration
from compassone.infrastructure.monitoring.event_sink import LoggingEventSink
from compassone.infrastructure.monitoring.logger_setup import level_from_name, setup_logging

logger = logging.getLogger(__name__)


# --- Dependency Injection Container (Manual) ---

def create_dependencies(
    config_file: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
    log_level: Optional[str] = None,
) -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root. Configuration problems surface later,
    when a command connects, so that ``operations`` and ``--help`` work
    without any settings.
    """
    if config_file is not None:
        load_configuration(config_file=config_file, force=True)
    else:
        load_configuration()

    log_format = str(get_config("log_format", "text")).lower()
    setup_logging(
        log_level=level_from_name(log_level or get_config("log_level")),
        log_file=get_config("log_file"),
        json_format=log_format == "json",
    )
    logger.debug("Configuration and logging initialized.")

    dependencies: Dict[str, Any] = {}
    dependencies["ui"] = ConsoleDisplay()
    dependencies["event_sink"] = LoggingEventSink()
    dependencies["client"] = CompassOneClient(event_sink=dependencies["event_sink"])
    dependencies["command_handler"] = CommandHandler(
        client=dependencies["client"],
        ui=dependencies["ui"],
        config=_LazyConfig(overrides or {}),
    )
    logger.debug("Command handler initialized.")
    return dependencies


class _LazyConfig(dict):
    """Overrides for ``load_client_config``, resolved when a command connects."""


def _resolve_config(handler: CommandHandler) -> None:
    if isinstance(handler.config, _LazyConfig):
        handler.config = load_client_config(dict(handler.config))


# --- Typer App Definition ---
app = typer.Typer(
    name="compassone",
    help="CompassOne API client: resilient, authenticated calls from the command line.",
    add_completion=False,
)


# --- Helper for Running Async Commands ---
def run_async(coro: Coroutine[Any, Any, int]) -> None:
    """Runs an async handler from a sync Typer command and exits with its code."""
    code = asyncio.run(coro)
    if code:
        raise typer.Exit(code=code)


def _handler(ctx: typer.Context) -> CommandHandler:
    handler: CommandHandler = ctx.obj["command_handler"]
    return handler


def _prepare(ctx: typer.Context) -> CommandHandler:
    """Builds the ClientConfig for commands that talk to the API."""
    handler = _handler(ctx)
    try:
        _resolve_config(handler)
    except CompassOneError as e:
        handler.report_error(e)
        raise typer.Exit(code=1)
    return handler


# --- CLI Commands ---

ParamsArgument = Annotated[
    Optional[List[str]],
    typer.Argument(help="Operation parameters as key=value (JSON for list/object values)."),
]
TimeoutOption = Annotated[
    Optional[float],
    typer.Option("--timeout", "-t", min=1, max=300, help="Per-attempt timeout in seconds."),
]


@app.command()
def operations(ctx: typer.Context):
    """Lists the operations the client knows about."""
    raise typer.Exit(code=_handler(ctx).handle_operations())


@app.command()
def invoke(
    ctx: typer.Context,
    operation: Annotated[str, typer.Argument(help="Operation name, e.g. 'get_asset'.")],
    params: ParamsArgument = None,
    timeout: TimeoutOption = None,
):
    """Invokes one operation and prints its result."""
    run_async(_prepare(ctx).handle_invoke(operation, params or [], timeout=timeout))


@app.command(name="list")
def list_command(
    ctx: typer.Context,
    operation: Annotated[str, typer.Argument(help="Paginated operation, e.g. 'list_assets'.")],
    params: ParamsArgument = None,
    max_pages: Annotated[Optional[int], typer.Option("--max-pages", min=1, help="Stop after this many pages.")] = None,
):
    """Fetches every page of a paginated operation."""
    run_async(_prepare(ctx).handle_list(operation, params or [], max_pages=max_pages))


@app.command()
def bulk(
    ctx: typer.Context,
    operation: Annotated[str, typer.Argument(help="Operation to invoke once per item.")],
    items_file: Annotated[Path, typer.Argument(
        exists=True, file_okay=True, dir_okay=False, readable=True, resolve_path=True,
        help="JSON array or JSON-lines file of parameter objects.",
    )],
    timeout: TimeoutOption = None,
):
    """Invokes an operation for many parameter sets with bounded concurrency."""
    run_async(_prepare(ctx).handle_bulk(operation, items_file, timeout=timeout))


@app.command(name="test-connection")
def test_connection_command(ctx: typer.Context):
    """Checks that the API endpoint is reachable and the credential is accepted."""
    run_async(_prepare(ctx).handle_test_connection())


@app.command(name="credential-status")
def credential_status_command(ctx: typer.Context):
    """Shows a redacted view of the current credential."""
    run_async(_prepare(ctx).handle_credential_status())


@app.command(name="rotate-credential")
def rotate_credential_command(ctx: typer.Context):
    """Rotates the credential in the secret store."""
    run_async(_prepare(ctx).handle_rotate_credential())


@app.callback()
def main_callback(
    ctx: typer.Context,
    endpoint: Annotated[Optional[str], typer.Option("--endpoint", "-e", help="API endpoint URL.")] = None,
    config_file: Annotated[Optional[Path], typer.Option(
        "--config", "-c", exists=True, dir_okay=False, help="YAML configuration file.",
    )] = None,
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="DEBUG, INFO, WARNING or ERROR.")] = None,
    no_cache: Annotated[bool, typer.Option("--no-cache", help="Disable the response cache.")] = False,
):
    """Wires dependencies once per invocation."""
    overrides: Dict[str, Any] = {"endpoint": endpoint}
    if no_cache:
        overrides["cache_enabled"] = False
    if ctx.obj is not None:
        return
    try:
        ctx.obj = create_dependencies(config_file=config_file, overrides=overrides, log_level=log_level)
    except CompassOneError as e:
        ConsoleDisplay().display_error(e.message, title=type(e).__name__)
        raise typer.Exit(code=1)


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
