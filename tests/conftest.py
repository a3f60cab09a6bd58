import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from typer.testing import CliRunner

from compassone.core.client import CompassOneClient
from compassone.domain.models.config import ClientConfig
from compassone.domain.redaction import clear_registered_secrets
from compassone.infrastructure.config.settings import clear_test_config, reset_configuration
from compassone.infrastructure.credentials.secret_stores import InMemorySecretStore
from compassone.infrastructure.monitoring.event_sink import LoggingEventSink
from compassone.infrastructure.transport.http_transport import HttpxTransport

TEST_ENDPOINT = "https://api.compassone.test"
TEST_SECRET = "sk-test-4f9a1c2b7e"
CREDENTIAL_NAME = "COMPASSONE_API_KEY"


class RecordingSleep:
    """Stands in for asyncio.sleep; records requested delays without waiting."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


def json_response(status: int, payload: Any = None, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
    content = b"" if payload is None else json.dumps(payload).encode()
    merged = {"Content-Type": "application/json"}
    merged.update(headers or {})
    return httpx.Response(status, content=content, headers=merged)


class ScriptedApi:
    """httpx MockTransport handler that replays a list of responses and records requests."""

    def __init__(self, responses: Optional[List[Any]] = None, default: Optional[Callable] = None):
        self.responses = list(responses or [])
        self.default = default
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            outcome = self.responses.pop(0)
        elif self.default is not None:
            outcome = self.default(request)
        else:
            outcome = json_response(200, {"ok": True})
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture(autouse=True)
def isolated_state(monkeypatch):
    """Keeps global config and the secret registry from leaking between tests."""
    monkeypatch.delenv(CREDENTIAL_NAME, raising=False)
    monkeypatch.delenv("COMPASSONE_CONFIG", raising=False)
    clear_test_config()
    reset_configuration()
    clear_registered_secrets()
    yield
    clear_test_config()
    reset_configuration()
    clear_registered_secrets()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def event_sink() -> LoggingEventSink:
    return LoggingEventSink(keep_history=True)


@pytest.fixture
def secret_store() -> InMemorySecretStore:
    return InMemorySecretStore({CREDENTIAL_NAME: TEST_SECRET})


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(endpoint=TEST_ENDPOINT, retry_jitter=False, cache_enabled=False)


@pytest.fixture
def make_client(secret_store, event_sink, sleep):
    """Builds a CompassOneClient whose sessions talk to the given MockTransport handler."""

    def factory(handler: Callable, store: Optional[InMemorySecretStore] = None, **kwargs) -> CompassOneClient:
        def transport_factory(cfg: ClientConfig, sink):
            return HttpxTransport(event_sink=sink, transport=httpx.MockTransport(handler))

        return CompassOneClient(
            secret_store=store or secret_store,
            transport_factory=transport_factory,
            event_sink=event_sink,
            sleep=sleep,
            **kwargs,
        )

    return factory


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def respond():
    """Builds JSON httpx responses."""
    return json_response


@pytest.fixture
def api():
    """Factory for ScriptedApi handlers."""
    return ScriptedApi
