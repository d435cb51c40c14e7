"""Relay server — connects the agent's event stream to WebSocket clients.

The agent adapter calls :meth:`RelayServer.receive_event` for every outgoing
event; the result is transformed and broadcast through the registry.
Inbound client frames go through :meth:`RelayServer.handle_message`, which
answers the sender directly and forwards control operations to the agent.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel
from starlette.requests import HTTPConnection

from agent_relay.adapters.base import AgentController
from agent_relay.schemas.agent import StateSnapshot, parse_agent_event
from agent_relay.schemas.events import (
    ActionEvent,
    ErrorEvent,
    PingCommand,
    PongEvent,
    PressPrimaryButtonCommand,
    PressSecondaryButtonCommand,
    ResponseEndEvent,
    ResponseEvent,
    SendMessageCommand,
    StartTaskCommand,
    UnknownCommand,
    parse_command,
)
from agent_relay.services.registry import ClientHandle, ConnectionRegistry
from agent_relay.services.transformer import latest_decision, latest_say, transform

logger = logging.getLogger(__name__)


class RelayServer:
    """Composes the connection registry and the message transformer."""

    def __init__(self, agent: AgentController, registry: ConnectionRegistry | None = None) -> None:
        self.agent = agent
        self.registry = registry if registry is not None else ConnectionRegistry()
        # Identity of the last snapshot entries already relayed
        self._last_say_key: tuple | None = None
        self._last_decision_key: tuple | None = None
        agent.subscribe(self.receive_event)

    # ── Agent → clients ──────────────────────────────────────────────

    def receive_event(self, event: dict[str, Any] | BaseModel) -> None:
        """Entry point for the agent's outgoing event stream."""
        if isinstance(event, dict):
            try:
                event = parse_agent_event(event)
            except ValueError as exc:
                logger.warning("Dropping malformed agent event: %s", exc)
                return

        logger.debug("Processing agent message: %s", event.type)
        relay_events = transform(event)
        if isinstance(event, StateSnapshot):
            relay_events = self._drop_seen(event, relay_events)
        for relay_event in relay_events:
            self.registry.broadcast(relay_event)

    def _drop_seen(self, snapshot: StateSnapshot, events: list[BaseModel]) -> list[BaseModel]:
        """Filter out snapshot-derived events that were already relayed.

        Chunks and the end marker are keyed on the latest ``say`` entry's
        position, timestamp, text and partial flag; the decision prompt on the
        latest matching entry, so each pending decision is signalled once.
        """
        say = latest_say(snapshot)
        say_key = (say[0], say[1].ts, say[1].text, say[1].partial) if say else None
        decision = latest_decision(snapshot)
        decision_key = (decision[0], decision[1].ts) if decision else None

        repeat_say = say_key is not None and say_key == self._last_say_key
        repeat_decision = decision_key is not None and decision_key == self._last_decision_key
        self._last_say_key = say_key
        self._last_decision_key = decision_key

        kept: list[BaseModel] = []
        for event in events:
            if repeat_say and isinstance(event, (ResponseEvent, ResponseEndEvent)):
                continue
            if repeat_decision and isinstance(event, ActionEvent) and event.is_decision_prompt:
                continue
            kept.append(event)
        return kept

    # ── Clients → agent ──────────────────────────────────────────────

    def connect(self, handle: ClientHandle) -> None:
        self.registry.add_connection(handle)

    def disconnect(self, handle: ClientHandle) -> None:
        self.registry.remove_connection(handle)

    async def handle_message(self, handle: ClientHandle, raw: str) -> None:
        """Handle one inbound text frame from *handle*."""
        try:
            command = parse_command(raw)
        except ValueError as exc:
            logger.warning("Error parsing WebSocket message: %s", exc)
            self.registry.send_to_client(handle, ErrorEvent(error="Invalid message format"))
            return

        logger.debug("WebSocket message received: %s", command.type)

        if isinstance(command, UnknownCommand):
            logger.warning("Unknown message type: %s", command.type)
            self.registry.send_to_client(
                handle, ErrorEvent(error=f"Unknown message type: {command.type}")
            )
        elif isinstance(command, PingCommand):
            self.registry.send_to_client(handle, PongEvent(timestamp=int(time.time() * 1000)))
        elif isinstance(command, StartTaskCommand):
            if not command.task:
                self._missing(handle, "task")
                return
            await self._call_agent(
                handle, "start task", self.agent.start_task, command.task, command.images
            )
        elif isinstance(command, SendMessageCommand):
            if not command.message:
                self._missing(handle, "message")
                return
            await self._call_agent(
                handle, "send message", self.agent.send_message, command.message, command.images
            )
        elif isinstance(command, PressPrimaryButtonCommand):
            await self._call_agent(handle, "press primary button", self.agent.press_primary_button)
        elif isinstance(command, PressSecondaryButtonCommand):
            await self._call_agent(
                handle, "press secondary button", self.agent.press_secondary_button
            )

    def _missing(self, handle: ClientHandle, field: str) -> None:
        self.registry.send_to_client(
            handle, ErrorEvent(error=f"Missing required parameter: {field}")
        )

    async def _call_agent(
        self,
        handle: ClientHandle,
        label: str,
        operation: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> None:
        """Run an agent operation; failures go back to the requester only."""
        try:
            await operation(*args)
        except Exception as exc:
            logger.warning("Error trying to %s: %s", label, exc)
            self.registry.send_to_client(handle, ErrorEvent(error=f"Failed to {label}: {exc}"))

    async def close(self) -> None:
        self.agent.unsubscribe(self.receive_event)
        await self.registry.close()


def get_relay(conn: HTTPConnection) -> RelayServer:
    """FastAPI dependency — the relay created in the app lifespan."""
    return conn.app.state.relay
