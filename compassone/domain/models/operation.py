"""Declared shapes of API operations.

An ``OperationSpec`` says how to turn keyword parameters into an HTTP request:
which parameters exist, where they go (path, query or body), what type they
must have and whether the operation is paginated.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple


class ParamLocation:
    PATH = "path"
    QUERY = "query"
    BODY = "body"


@dataclass(frozen=True)
class ParameterSpec:
    """A single declared parameter."""
    name: str
    type: type = str
    location: str = ParamLocation.QUERY
    required: bool = False
    choices: Optional[Tuple[str, ...]] = None
    description: str = ""
    wire_name: Optional[str] = None

    @property
    def key(self) -> str:
        """Name used on the wire (query key or body field)."""
        return self.wire_name or self.name


@dataclass(frozen=True)
class OperationSpec:
    """A named API operation.

    Attributes:
        name: Operation identifier used by callers (e.g. 'get_asset').
        method: HTTP method.
        path: Path template relative to the versioned endpoint, e.g. '/assets/{asset_id}'.
        parameters: Declared parameters.
        paginated: Whether responses carry a continuation token.
        description: Short help text shown by the CLI.
    """
    name: str
    method: str
    path: str
    parameters: Tuple[ParameterSpec, ...] = field(default_factory=tuple)
    paginated: bool = False
    description: str = ""

    @property
    def idempotent(self) -> bool:
        return self.method.upper() in ("GET", "HEAD", "OPTIONS")

    def parameter(self, name: str) -> Optional[ParameterSpec]:
        for spec in self.parameters:
            if spec.name == name:
                return spec
        return None
