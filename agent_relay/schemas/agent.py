"""Events produced by the agent and consumed by the relay."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

# Ask sub-kinds that block the agent on a yes/no answer
DECISION_ASKS = frozenset({"plan_mode_respond", "followup"})


class HistoryEntry(BaseModel):
    """One entry of the agent's message history."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["say", "ask"]
    ts: int | None = None
    say: str | None = None  # sub-kind when type == "say"
    ask: str | None = None  # sub-kind when type == "ask"
    text: str | None = None
    partial: bool = False


class StateSnapshot(BaseModel):
    """Full history as the agent currently sees it."""

    type: Literal["state"] = "state"
    messages: list[HistoryEntry] = Field(default_factory=list)


class PartialMessage(BaseModel):
    """A streaming fragment of the entry currently being written."""

    type: Literal["partialMessage"] = "partialMessage"
    message: HistoryEntry


class ActionNotice(BaseModel):
    type: Literal["action"] = "action"
    action: str


class InvokeNotice(BaseModel):
    type: Literal["invoke"] = "invoke"
    invoke: str
    text: str | None = None


class UnknownAgentEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str


AgentEvent = Annotated[
    Union[StateSnapshot, PartialMessage, ActionNotice, InvokeNotice],
    Field(discriminator="type"),
]

agent_event_adapter: TypeAdapter[AgentEvent] = TypeAdapter(AgentEvent)

AGENT_EVENT_TYPES = frozenset({"state", "partialMessage", "action", "invoke"})


def parse_agent_event(data: dict[str, Any]) -> AgentEvent | UnknownAgentEvent:
    """Turn a raw agent payload into a typed event.

    Unknown ``type`` values become :class:`UnknownAgentEvent`; a known type
    with a broken body raises ``ValueError``.
    """
    kind = data.get("type")
    if kind not in AGENT_EVENT_TYPES:
        return UnknownAgentEvent(**{**data, "type": str(kind)})
    return agent_event_adapter.validate_python(data)
