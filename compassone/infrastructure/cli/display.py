import json
import logging
from typing import Any, Dict, List, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from compassone.domain.interfaces.user_interface import UserInterface
from compassone.domain.redaction import redact

logger = logging.getLogger(__name__)

MAX_TABLE_COLUMNS = 8


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None, error_console: Optional[Console] = None):
        self._console = console or Console()
        self._error_console = error_console or Console(stderr=True)

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_result(self, data: Any, title: Optional[str] = None) -> None:
        """Renders a result as highlighted JSON, inside a panel when titled."""
        rendered = redact(json.dumps(data, indent=2, default=str, ensure_ascii=False))
        body = Syntax(rendered, "json", word_wrap=True)
        if title:
            self.console.print(Panel(body, title=f"[bold cyan]{title}[/bold cyan]", box=ROUNDED, border_style="cyan"))
        else:
            self.console.print(body)

    def display_table(self, rows: List[Dict[str, Any]], title: Optional[str] = None) -> None:
        """Displays records as a table; columns come from the keys of the first rows."""
        if not rows:
            self.display_info("No items.")
            return
        columns: List[str] = []
        for row in rows:
            for key in row:
                if key not in columns and len(columns) < MAX_TABLE_COLUMNS:
                    columns.append(key)
        table = Table(title=title, box=ROUNDED, border_style="cyan", show_lines=False)
        for column in columns:
            table.add_column(column, overflow="fold")
        for row in rows:
            table.add_row(*(redact(_cell(row.get(column))) for column in columns))
        self.console.print(table)
        logger.debug(f"Displayed table with {len(rows)} rows and {len(columns)} columns")

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
            title: Optional panel title (defaults to "Error").
        """
        title = kwargs.get("title", "Error")
        panel = Panel(
            Text(redact(error_message), style="white"),
            title=f"[bold red]{title}[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1),
        )
        self._error_console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(redact(info_message), style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1),
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(redact(warning_message), style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1),
        )
        self._error_console.print(panel)
