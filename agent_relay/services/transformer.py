"""Message transformer — turn agent events into relay events.

Pure functions: nothing here remembers what was sent before. Repeated
snapshots are de-duplicated by the relay server.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel

from agent_relay.schemas.agent import (
    DECISION_ASKS,
    ActionNotice,
    HistoryEntry,
    InvokeNotice,
    PartialMessage,
    StateSnapshot,
    UnknownAgentEvent,
)
from agent_relay.schemas.events import (
    ActionEvent,
    InvokeEvent,
    ResponseEndEvent,
    ResponseEvent,
    decision_prompt,
)
from agent_relay.services.sanitizer import has_directive_markers, sanitize

logger = logging.getLogger(__name__)

# Invoke kind forwarded to clients; the rest are host-internal
SEND_MESSAGE_INVOKE = "sendMessage"


def latest_say(snapshot: StateSnapshot) -> tuple[int, HistoryEntry] | None:
    """Return (index, entry) of the most recent ``say`` with text."""
    for index in range(len(snapshot.messages) - 1, -1, -1):
        entry = snapshot.messages[index]
        if entry.type == "say" and entry.text:
            return index, entry
    return None


def _is_decision(entry: HistoryEntry) -> bool:
    if entry.type == "ask":
        return entry.ask in DECISION_ASKS
    return has_directive_markers(entry.text)


def latest_decision(snapshot: StateSnapshot) -> tuple[int, HistoryEntry] | None:
    """Return (index, entry) of the most recent entry asking for a decision."""
    for index in range(len(snapshot.messages) - 1, -1, -1):
        entry = snapshot.messages[index]
        if _is_decision(entry):
            return index, entry
    return None


def _from_snapshot(snapshot: StateSnapshot) -> list[BaseModel]:
    events: list[BaseModel] = []

    found = latest_say(snapshot)
    if found:
        _, entry = found
        text = sanitize(entry.text or "")
        if text:
            events.append(ResponseEvent(response=text))
        if not entry.partial:
            events.append(ResponseEndEvent())

    # One prompt per snapshot, however many entries match
    if latest_decision(snapshot) is not None:
        events.append(decision_prompt())
    return events


def transform(event: BaseModel) -> list[BaseModel]:
    """Return the relay events (possibly none) derived from one agent event."""
    if isinstance(event, StateSnapshot):
        return _from_snapshot(event)

    if isinstance(event, PartialMessage):
        if not event.message.text:
            return []
        text = sanitize(event.message.text)
        return [ResponseEvent(response=text)] if text else []

    if isinstance(event, ActionNotice):
        return [ActionEvent(action=event.action)]

    if isinstance(event, InvokeNotice):
        if event.invoke == SEND_MESSAGE_INVOKE and event.text:
            return [InvokeEvent(invoke=event.invoke, text=event.text)]
        return []

    if isinstance(event, UnknownAgentEvent):
        logger.debug("Ignoring agent event of unknown type %r", event.type)
        return []

    logger.debug("Ignoring unsupported agent event %r", type(event).__name__)
    return []
