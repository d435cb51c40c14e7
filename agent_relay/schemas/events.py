"""Relay wire protocol.

Outbound events (server → client) and inbound commands (client → server)
are both closed tagged unions keyed by ``type``. Each frame carries exactly
one JSON object.
"""

from __future__ import annotations

import json
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

# Action value that tells clients the agent is blocked on a yes/no choice
DECISION_ACTION = "showYesNoButtons"


# ── Outbound events ──────────────────────────────────────────────────


class StatusEvent(BaseModel):
    type: Literal["status"] = "status"
    status: str


class ResponseEvent(BaseModel):
    """One chunk of agent prose, already sanitized."""

    type: Literal["response"] = "response"
    response: str


class ResponseEndEvent(BaseModel):
    type: Literal["responseEnd"] = "responseEnd"


class ActionEvent(BaseModel):
    type: Literal["action"] = "action"
    action: str

    @property
    def is_decision_prompt(self) -> bool:
        return self.action == DECISION_ACTION


class InvokeEvent(BaseModel):
    type: Literal["invoke"] = "invoke"
    invoke: str
    text: str | None = None


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: str


class PongEvent(BaseModel):
    type: Literal["pong"] = "pong"
    timestamp: int


RelayEvent = Annotated[
    Union[
        StatusEvent,
        ResponseEvent,
        ResponseEndEvent,
        ActionEvent,
        InvokeEvent,
        ErrorEvent,
        PongEvent,
    ],
    Field(discriminator="type"),
]

relay_event_adapter: TypeAdapter[RelayEvent] = TypeAdapter(RelayEvent)


def decision_prompt() -> ActionEvent:
    return ActionEvent(action=DECISION_ACTION)


def encode_event(event: BaseModel) -> str:
    """Serialize an event or command to a single JSON text frame."""
    return event.model_dump_json(exclude_none=True)


def parse_event(raw: str | bytes) -> RelayEvent:
    """Parse an outbound frame on the client side.

    Raises ``ValueError`` (pydantic's ``ValidationError`` is one) for
    anything that is not a known event.
    """
    return relay_event_adapter.validate_json(raw)


# ── Inbound commands ─────────────────────────────────────────────────


class PingCommand(BaseModel):
    type: Literal["ping"] = "ping"


class StartTaskCommand(BaseModel):
    type: Literal["startTask"] = "startTask"
    task: str = ""
    images: list[str] | None = None


class SendMessageCommand(BaseModel):
    type: Literal["sendMessage"] = "sendMessage"
    message: str = ""
    images: list[str] | None = None


class PressPrimaryButtonCommand(BaseModel):
    type: Literal["pressPrimaryButton"] = "pressPrimaryButton"


class PressSecondaryButtonCommand(BaseModel):
    type: Literal["pressSecondaryButton"] = "pressSecondaryButton"


class UnknownCommand(BaseModel):
    """A well-formed frame whose ``type`` is not part of the protocol."""

    type: str


ClientCommand = Annotated[
    Union[
        PingCommand,
        StartTaskCommand,
        SendMessageCommand,
        PressPrimaryButtonCommand,
        PressSecondaryButtonCommand,
    ],
    Field(discriminator="type"),
]

client_command_adapter: TypeAdapter[ClientCommand] = TypeAdapter(ClientCommand)

COMMAND_TYPES = frozenset(
    {"ping", "startTask", "sendMessage", "pressPrimaryButton", "pressSecondaryButton"}
)


def parse_command(raw: str) -> ClientCommand | UnknownCommand:
    """Parse an inbound frame.

    Raises ``ValueError`` when the frame is not a JSON object or a known
    command fails validation.
    """
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    kind = data.get("type")
    if kind not in COMMAND_TYPES:
        return UnknownCommand(type=str(kind))
    return client_command_adapter.validate_python(data)
