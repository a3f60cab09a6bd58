"""Request Builder: translates operation calls into wire requests.

Parameters are checked against the operation's declared shape first; invalid
calls fail fast with ClientError and never reach the transport. The builder
does not add authentication; that is attached per attempt.
"""

import logging
import string
from typing import Any, Dict, Optional, Union
from urllib.parse import quote

from compassone.core.operations import PAGE_SIZE, OperationRegistry
from compassone.domain.errors import ClientError
from compassone.domain.models.common import ContinuationToken, Parameters
from compassone.domain.models.config import DEFAULT_USER_AGENT
from compassone.domain.models.operation import OperationSpec, ParameterSpec, ParamLocation
from compassone.domain.models.request import WireRequest

logger = logging.getLogger(__name__)

PAGE_TOKEN_PARAM = "pageToken"


def _type_matches(value: Any, expected: type) -> bool:
    if expected is bool:
        return isinstance(value, bool)
    if isinstance(value, bool):
        return False
    if expected is float:
        return isinstance(value, (int, float))
    return isinstance(value, expected)


class RequestBuilder:
    """Builds WireRequests for registered operations.

    Args:
        base_url: API endpoint without trailing slash.
        api_version: Full semantic version; its major number selects the path prefix.
        registry: Known operations.
        default_page_size: Page size applied to paginated operations when unset.
        user_agent: User-Agent header value.
        extra_headers: Headers added to every request.
    """

    def __init__(
        self,
        base_url: str,
        api_version: str,
        registry: Optional[OperationRegistry] = None,
        default_page_size: int = 50,
        user_agent: str = DEFAULT_USER_AGENT,
        extra_headers: Optional[Dict[str, str]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.registry = registry or OperationRegistry()
        self.default_page_size = default_page_size
        self.user_agent = user_agent
        self.extra_headers = dict(extra_headers or {})

    @property
    def version_prefix(self) -> str:
        return "/v" + self.api_version.split(".")[0]

    def resolve(self, operation: Union[str, OperationSpec]) -> OperationSpec:
        if isinstance(operation, OperationSpec):
            return operation
        return self.registry.get(operation)

    def validate(self, spec: OperationSpec, parameters: Parameters) -> None:
        """Checks names, presence, types and choices. Raises ClientError."""
        unknown = sorted(set(parameters) - {p.name for p in spec.parameters})
        if unknown:
            raise ClientError(f"Unknown parameter(s) for {spec.name}: {', '.join(unknown)}")
        for param in spec.parameters:
            value = parameters.get(param.name)
            if value is None:
                if param.required:
                    raise ClientError(f"Missing required parameter '{param.name}' for {spec.name}")
                continue
            self._check_value(spec, param, value)

    def _check_value(self, spec: OperationSpec, param: ParameterSpec, value: Any) -> None:
        if not _type_matches(value, param.type):
            raise ClientError(
                f"Parameter '{param.name}' of {spec.name} must be {param.type.__name__}, "
                f"got {type(value).__name__}"
            )
        if param.choices is not None and value not in param.choices:
            raise ClientError(
                f"Parameter '{param.name}' of {spec.name} must be one of {', '.join(param.choices)}; got {value!r}"
            )
        if param.location == ParamLocation.PATH and isinstance(value, str) and not value.strip():
            raise ClientError(f"Path parameter '{param.name}' of {spec.name} must not be empty")
        if param.name == PAGE_SIZE and not 1 <= value <= 1000:
            raise ClientError(f"page_size must be between 1 and 1000, got {value}")

    def build(
        self,
        operation: Union[str, OperationSpec],
        parameters: Optional[Parameters] = None,
        continuation_token: Optional[ContinuationToken] = None,
        request_id: Optional[str] = None,
    ) -> WireRequest:
        """Validates ``parameters`` and builds the unauthenticated request.

        Raises:
            ClientError: Unknown operation or invalid parameters.
        """
        spec = self.resolve(operation)
        params = dict(parameters or {})
        self.validate(spec, params)

        path_values: Dict[str, str] = {}
        query: Dict[str, Any] = {}
        body: Dict[str, Any] = {}
        for param in spec.parameters:
            value = params.get(param.name)
            if value is None:
                continue
            if param.location == ParamLocation.PATH:
                path_values[param.name] = quote(str(value), safe="")
            elif param.location == ParamLocation.BODY:
                body[param.key] = value
            else:
                query[param.key] = str(value).lower() if isinstance(value, bool) else value

        if spec.paginated:
            page_param = spec.parameter(PAGE_SIZE)
            if page_param is not None and page_param.key not in query:
                query[page_param.key] = self.default_page_size
            if continuation_token:
                query[PAGE_TOKEN_PARAM] = continuation_token
        elif continuation_token:
            raise ClientError(f"Operation {spec.name} is not paginated")

        url = self.base_url + self.version_prefix + self._fill_path(spec, path_values)

        headers = {
            "Accept": "application/json",
            "User-Agent": self.user_agent,
            "X-Api-Version": self.api_version,
        }
        headers.update(self.extra_headers)
        if request_id:
            headers["X-Request-Id"] = request_id

        json_body = None
        if spec.method.upper() in ("POST", "PUT", "PATCH"):
            json_body = body
            headers["Content-Type"] = "application/json"

        return WireRequest(method=spec.method.upper(), url=url, headers=headers, query=query, json_body=json_body)

    @staticmethod
    def _fill_path(spec: OperationSpec, values: Dict[str, str]) -> str:
        fields = [name for _, name, _, _ in string.Formatter().parse(spec.path) if name]
        missing = [name for name in fields if name not in values]
        if missing:
            raise ClientError(f"Missing path parameter(s) for {spec.name}: {', '.join(missing)}")
        return spec.path.format(**values)
