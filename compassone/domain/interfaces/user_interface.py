"""Interface for interacting with the user (output only).

Defines the contract for displaying results, tables, errors, warnings and
informational messages, allowing different UI implementations.
"""

import abc
from typing import Any, Dict, List, Optional


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_result(self, data: Any, title: Optional[str] = None) -> None:
        """Displays a structured API result (rendered as JSON).

        Args:
            data: JSON-serialisable result data.
            title: Optional caption.
        """
        pass

    @abc.abstractmethod
    def display_table(self, rows: List[Dict[str, Any]], title: Optional[str] = None) -> None:
        """Displays a list of records as a table."""
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        pass
