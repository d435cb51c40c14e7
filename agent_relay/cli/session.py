"""Client session state machine.

Decides, from the relay events received so far, whether the user may type
the next message, must answer a yes/no decision, or has to wait for the
current turn to finish. It has no I/O of its own: output goes through a
:class:`SessionView`, and outbound frames are returned as command models
for the caller to send.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Protocol

from pydantic import BaseModel

from agent_relay.schemas.events import (
    ActionEvent,
    ErrorEvent,
    InvokeEvent,
    PongEvent,
    PressPrimaryButtonCommand,
    PressSecondaryButtonCommand,
    ResponseEndEvent,
    ResponseEvent,
    SendMessageCommand,
    StartTaskCommand,
    StatusEvent,
)

logger = logging.getLogger(__name__)

EXIT_COMMAND = "exit"
YES_ANSWERS = frozenset({"y", "yes"})


class SessionState(StrEnum):
    IDLE = "idle"  # ready for free text
    AWAITING_TURN = "awaiting_turn"  # request sent, response not complete
    AWAITING_DECISION = "awaiting_decision"  # agent blocked on yes/no


class SessionView(Protocol):
    def show_status(self, status: str) -> None: ...

    def show_notice(self, message: str) -> None: ...

    def show_error(self, message: str) -> None: ...

    def show_chunk(self, text: str, *, first: bool) -> None: ...

    def end_response(self) -> None: ...

    def show_decision_request(self) -> None: ...


class ClientSession:
    def __init__(self, view: SessionView) -> None:
        self.view = view
        self.state = SessionState.IDLE
        self.turn_started = False
        self.closed = False
        self.pending_text: list[str] = []

    @property
    def can_prompt(self) -> bool:
        return not self.closed and self.state != SessionState.AWAITING_TURN

    # ── User input ───────────────────────────────────────────────────

    def handle_input(self, line: str) -> BaseModel | None:
        """Apply one line typed by the user.

        Returns the command to send, or None. Typing ``exit`` while idle
        sets :attr:`closed`.
        """
        if self.state == SessionState.AWAITING_DECISION:
            return self._answer(line)
        if self.state == SessionState.AWAITING_TURN:
            logger.debug("Ignoring input while a turn is in flight")
            return None

        text = line.strip()
        if text.lower() == EXIT_COMMAND:
            self.closed = True
            return None
        if not text:
            return None

        self.state = SessionState.AWAITING_TURN
        if not self.turn_started:
            self.turn_started = True
            self.view.show_notice("Starting new task...")
            return StartTaskCommand(task=text)
        return SendMessageCommand(message=text)

    def _answer(self, line: str) -> BaseModel:
        self.state = SessionState.AWAITING_TURN
        if line.strip().lower() in YES_ANSWERS:
            self.view.show_notice("Sending: Yes")
            return PressPrimaryButtonCommand()
        self.view.show_notice("Sending: No")
        return PressSecondaryButtonCommand()

    def recover(self) -> None:
        """Return to a promptable state after the prompt itself failed."""
        if self.state == SessionState.AWAITING_TURN:
            self.state = SessionState.IDLE

    # ── Relay events ─────────────────────────────────────────────────

    def handle_event(self, event: BaseModel) -> None:
        if isinstance(event, ResponseEvent):
            self._on_chunk(event.response)
        elif isinstance(event, ResponseEndEvent):
            self._on_response_end()
        elif isinstance(event, ActionEvent):
            if event.is_decision_prompt:
                self._on_decision()
            else:
                logger.debug("Action: %s", event.action)
        elif isinstance(event, ErrorEvent):
            self.view.show_error(event.error)
            if self.state == SessionState.AWAITING_TURN:
                self.state = SessionState.IDLE
        elif isinstance(event, StatusEvent):
            self.view.show_status(event.status)
        elif isinstance(event, InvokeEvent):
            self._on_invoke(event)
        elif isinstance(event, PongEvent):
            logger.debug("Pong at %d", event.timestamp)
        else:
            logger.debug("Ignoring event %r", type(event).__name__)

    def _on_chunk(self, text: str) -> None:
        # Repeated snapshots re-send text already shown this turn
        if not text or text in self.pending_text:
            return
        first = not self.pending_text
        self.pending_text.append(text)
        self.view.show_chunk(text, first=first)

    def _on_response_end(self) -> None:
        self.view.end_response()
        self.pending_text = []
        if self.state == SessionState.AWAITING_TURN:
            self.state = SessionState.IDLE

    def _on_decision(self) -> None:
        if self.state == SessionState.AWAITING_DECISION:
            return
        self.state = SessionState.AWAITING_DECISION
        self.view.show_decision_request()

    def _on_invoke(self, event: InvokeEvent) -> None:
        """Show button-click invokes.

        This relay only forwards ``sendMessage`` invokes, which are ignored
        here; the click notices come from other relays on the same protocol.
        """
        if event.invoke == "primaryButtonClick":
            self.view.show_notice("Primary button clicked (Yes)")
        elif event.invoke == "secondaryButtonClick":
            self.view.show_notice("Secondary button clicked (No)")
