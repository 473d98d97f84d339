"""
FlowDeploy Test Configuration and Fixtures

Fakes for the network edges (API gateway, socket channel) plus a logged-in
session backed by a real CredentialStore in tmp_path.
"""

from typing import Any, Callable, List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from flowdeploy.models.results import ApiResult
from flowdeploy.models.session import User
from flowdeploy.services.api_client import ApiGatewayClient
from flowdeploy.services.credential_store import CredentialStore
from flowdeploy.services.deploy_controller import DeploymentSessionController
from flowdeploy.services.session_context import SessionContext


def make_user(plan: str = "free", **overrides) -> User:
    data = {
        "id": "u1",
        "username": "octocat",
        "email": "octocat@example.com",
        "plan": plan,
        "max_deployments": 1 if plan == "free" else 10,
        "api_key": "fd_key_1",
    }
    data.update(overrides)
    return User(**data)


class FakeStream:
    """Stands in for EventStreamClient; events are pushed with emit()."""

    def __init__(self):
        self.connects: List[tuple] = []
        self.disconnect_calls = 0
        self.on_event: Optional[Callable[[Any], None]] = None

    async def connect(self, token, deployment_id, on_event) -> bool:
        self.connects.append((token, deployment_id))
        self.on_event = on_event
        return True

    async def disconnect(self) -> None:
        self.disconnect_calls += 1

    def emit(self, event) -> None:
        self.on_event(event)


class StreamFactory:
    """Records every stream handle the controller opens."""

    def __init__(self):
        self.created: List[FakeStream] = []

    def __call__(self) -> FakeStream:
        stream = FakeStream()
        self.created.append(stream)
        return stream

    @property
    def last(self) -> FakeStream:
        return self.created[-1]


class FakeSocketClient:
    """Minimal python-socketio AsyncClient double."""

    def __init__(self, fail_connects: int = 0, error: Optional[Exception] = None):
        self.handlers = {}
        self.connect_calls: List[dict] = []
        self.disconnect_calls = 0
        self.fail_connects = fail_connects
        self.error = error

    def on(self, event, handler=None):
        self.handlers[event] = handler

    async def connect(self, url, auth=None, transports=None, **kwargs):
        self.connect_calls.append({"url": url, "auth": auth, "transports": transports})
        if self.fail_connects:
            self.fail_connects -= 1
            raise self.error

    async def disconnect(self):
        self.disconnect_calls += 1

    def fire(self, event, *args):
        self.handlers[event](*args)


@pytest.fixture
def free_user() -> User:
    return make_user("free")


@pytest.fixture
def pro_user() -> User:
    return make_user("pro")


@pytest.fixture
def store(tmp_path) -> CredentialStore:
    return CredentialStore(tmp_path)


@pytest.fixture
def api() -> Mock:
    """ApiGatewayClient double with successful defaults."""
    client = Mock(spec=ApiGatewayClient)
    client.create_deployment = AsyncMock(return_value=ApiResult.success("dep-1"))
    client.list_deployments = AsyncMock(return_value=ApiResult.success([]))
    client.get_profile = AsyncMock(return_value=ApiResult.success(make_user("free")))
    client.stop_deployment = AsyncMock(return_value=ApiResult.success(None))
    client.restart_deployment = AsyncMock(return_value=ApiResult.success(None))
    client.delete_deployment = AsyncMock(return_value=ApiResult.success(None))
    return client


@pytest.fixture
def session(api, store, free_user) -> SessionContext:
    """Session restored from a saved credential."""
    store.save("tok-1", free_user)
    ctx = SessionContext(api, store)
    ctx.restore()
    return ctx


@pytest.fixture
def streams() -> StreamFactory:
    return StreamFactory()


@pytest.fixture
def controller(api, session, streams) -> DeploymentSessionController:
    return DeploymentSessionController(api, session, streams, disconnect_grace=0.01)
