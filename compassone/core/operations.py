"""Registry of CompassOne API operations.

Declares the request shapes of the asset, finding and incident endpoints
(plus the health check) so the request builder can validate parameters
before anything is sent.
"""

from typing import Dict, Iterable, List, Optional

from compassone.domain.errors import ClientError
from compassone.domain.models.operation import OperationSpec, ParameterSpec, ParamLocation as Loc

PAGE_SIZE = "page_size"

ASSET_CLASSES = ("DEVICE", "CONTAINER", "SOFTWARE", "USER", "PROCESS", "SERVICE", "SOURCE")
SEVERITIES = ("CRITICAL", "HIGH", "MEDIUM", "LOW", "INFO")
FINDING_STATUSES = ("OPEN", "ACKNOWLEDGED", "RESOLVED", "SUPPRESSED")
INCIDENT_STATUSES = ("OPEN", "IN_PROGRESS", "CLOSED")
SORT_ORDERS = ("ASC", "DESC")


def _page_params(*extra: ParameterSpec) -> tuple:
    return (
        ParameterSpec(PAGE_SIZE, int, Loc.QUERY, wire_name="pageSize", description="Items per page"),
        ParameterSpec("sort_by", str, Loc.QUERY, wire_name="sortBy"),
        ParameterSpec("sort_order", str, Loc.QUERY, choices=SORT_ORDERS, wire_name="sortOrder"),
    ) + extra


DEFAULT_OPERATIONS = (
    OperationSpec("get_health", "GET", "/health", description="Check API availability"),

    # --- Assets ---
    OperationSpec(
        "list_assets", "GET", "/assets",
        parameters=_page_params(
            ParameterSpec("asset_class", str, Loc.QUERY, choices=ASSET_CLASSES, wire_name="assetClass"),
            ParameterSpec("search", str, Loc.QUERY),
            ParameterSpec("tag", str, Loc.QUERY),
        ),
        paginated=True,
        description="List assets",
    ),
    OperationSpec(
        "get_asset", "GET", "/assets/{asset_id}",
        parameters=(ParameterSpec("asset_id", str, Loc.PATH, required=True),),
        description="Get one asset",
    ),
    OperationSpec(
        "create_asset", "POST", "/assets",
        parameters=(
            ParameterSpec("name", str, Loc.BODY, required=True),
            ParameterSpec("asset_class", str, Loc.BODY, required=True, choices=ASSET_CLASSES, wire_name="assetClass"),
            ParameterSpec("description", str, Loc.BODY),
            ParameterSpec("tags", list, Loc.BODY),
            ParameterSpec("attributes", dict, Loc.BODY),
        ),
        description="Create an asset",
    ),
    OperationSpec(
        "update_asset", "PATCH", "/assets/{asset_id}",
        parameters=(
            ParameterSpec("asset_id", str, Loc.PATH, required=True),
            ParameterSpec("name", str, Loc.BODY),
            ParameterSpec("description", str, Loc.BODY),
            ParameterSpec("tags", list, Loc.BODY),
            ParameterSpec("attributes", dict, Loc.BODY),
        ),
        description="Update an asset",
    ),
    OperationSpec(
        "delete_asset", "DELETE", "/assets/{asset_id}",
        parameters=(ParameterSpec("asset_id", str, Loc.PATH, required=True),),
        description="Delete an asset",
    ),

    # --- Findings ---
    OperationSpec(
        "list_findings", "GET", "/findings",
        parameters=_page_params(
            ParameterSpec("severity", str, Loc.QUERY, choices=SEVERITIES),
            ParameterSpec("status", str, Loc.QUERY, choices=FINDING_STATUSES),
            ParameterSpec("asset_id", str, Loc.QUERY, wire_name="assetId"),
        ),
        paginated=True,
        description="List findings",
    ),
    OperationSpec(
        "get_finding", "GET", "/findings/{finding_id}",
        parameters=(ParameterSpec("finding_id", str, Loc.PATH, required=True),),
        description="Get one finding",
    ),
    OperationSpec(
        "update_finding", "PATCH", "/findings/{finding_id}",
        parameters=(
            ParameterSpec("finding_id", str, Loc.PATH, required=True),
            ParameterSpec("status", str, Loc.BODY, choices=FINDING_STATUSES),
            ParameterSpec("comment", str, Loc.BODY),
        ),
        description="Update a finding's status",
    ),

    # --- Incidents ---
    OperationSpec(
        "list_incidents", "GET", "/incidents",
        parameters=_page_params(
            ParameterSpec("status", str, Loc.QUERY, choices=INCIDENT_STATUSES),
            ParameterSpec("severity", str, Loc.QUERY, choices=SEVERITIES),
        ),
        paginated=True,
        description="List incidents",
    ),
    OperationSpec(
        "get_incident", "GET", "/incidents/{incident_id}",
        parameters=(ParameterSpec("incident_id", str, Loc.PATH, required=True),),
        description="Get one incident",
    ),
)


class OperationRegistry:
    """Name -> OperationSpec lookup."""

    def __init__(self, operations: Optional[Iterable[OperationSpec]] = None):
        self._operations: Dict[str, OperationSpec] = {}
        for spec in DEFAULT_OPERATIONS if operations is None else operations:
            self.register(spec)

    def register(self, spec: OperationSpec) -> None:
        if spec.name in self._operations:
            raise ValueError(f"Operation '{spec.name}' is already registered")
        self._operations[spec.name] = spec

    def get(self, name: str) -> OperationSpec:
        """Raises ClientError for unknown operations."""
        spec = self._operations.get(name)
        if spec is None:
            raise ClientError(f"Unknown operation: {name!r}")
        return spec

    def names(self) -> List[str]:
        return sorted(self._operations)

    def __iter__(self):
        return iter(self._operations[name] for name in self.names())

    def __contains__(self, name: object) -> bool:
        return name in self._operations
