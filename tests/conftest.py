"""Shared fixtures: a fake agent, fake sockets and app clients."""

import json

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from starlette.websockets import WebSocketState

from agent_relay.adapters.base import AgentController, AgentError
from agent_relay.config import settings

# Never dial a real agent host from the test suite
settings.agent_auto_connect = False

from agent_relay.main import app  # noqa: E402
from agent_relay.services.registry import ConnectionRegistry  # noqa: E402
from agent_relay.services.relay_server import RelayServer, get_relay  # noqa: E402


class FakeAgent(AgentController):
    """Records control calls; raises ``AgentError(fail_with)`` when set."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple] = []
        self.fail_with: str | None = None
        self.instructions: str | None = "Be concise."

    def _record(self, *call) -> None:
        self.calls.append(call)
        if self.fail_with:
            raise AgentError(self.fail_with)

    async def start_task(self, task, images=None):
        self._record("start_task", task, images)

    async def send_message(self, message, images=None):
        self._record("send_message", message, images)

    async def press_primary_button(self):
        self._record("press_primary_button")

    async def press_secondary_button(self):
        self._record("press_secondary_button")

    async def get_custom_instructions(self):
        self._record("get_custom_instructions")
        return self.instructions

    async def set_custom_instructions(self, instructions):
        self._record("set_custom_instructions", instructions)
        self.instructions = instructions


class FakeSocket:
    """Stands in for a Starlette WebSocket inside the registry."""

    def __init__(self, *, fail: bool = False, close_after: int | None = None) -> None:
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[dict] = []
        self.fail = fail
        self.close_after = close_after

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("socket is broken")
        self.sent.append(json.loads(data))
        if self.close_after is not None and len(self.sent) >= self.close_after:
            self.client_state = WebSocketState.DISCONNECTED

    @property
    def types(self) -> list[str]:
        return [m["type"] for m in self.sent]


@pytest.fixture
def agent() -> FakeAgent:
    return FakeAgent()


@pytest.fixture
def make_socket():
    return FakeSocket


@pytest_asyncio.fixture
async def relay(agent: FakeAgent):
    server = RelayServer(agent, ConnectionRegistry(max_history=50))
    yield server
    await server.close()


@pytest_asyncio.fixture
async def client(relay: RelayServer):
    app.dependency_overrides[get_relay] = lambda: relay
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def ws_relay(agent: FakeAgent) -> RelayServer:
    """A relay for WebSocket tests; its tasks live on the TestClient loop."""
    return RelayServer(agent, ConnectionRegistry(max_history=50))


@pytest.fixture
def ws_client(ws_relay: RelayServer):
    app.dependency_overrides[get_relay] = lambda: ws_relay
    with TestClient(app) as tc:
        yield tc
    app.dependency_overrides.clear()
