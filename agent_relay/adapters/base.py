"""Abstract base class for agent adapters.

Swap the agent host for another runtime by implementing this interface.
Adapters push every outgoing agent event to their subscribers; the relay
server subscribes itself on construction.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

EventListener = Callable[[dict[str, Any]], None]


class AgentError(RuntimeError):
    """The agent rejected or failed a control operation."""


class AgentController(ABC):
    """Contract that any agent backend must satisfy."""

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []

    # ── Event subscription ───────────────────────────────────────────

    def subscribe(self, listener: EventListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, event: dict[str, Any]) -> None:
        """Deliver one agent event to every subscriber."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Agent event listener failed")

    # ── Connection lifecycle ─────────────────────────────────────────

    async def connect(self) -> None:
        """Establish a connection to the agent (no-op by default)."""

    async def disconnect(self) -> None:
        """Tear down the connection (no-op by default)."""

    # ── Control operations ───────────────────────────────────────────

    @abstractmethod
    async def start_task(self, task: str, images: list[str] | None = None) -> None:
        """Start a new task."""

    @abstractmethod
    async def send_message(self, message: str, images: list[str] | None = None) -> None:
        """Send a message to the current task."""

    @abstractmethod
    async def press_primary_button(self) -> None:
        """Answer the pending decision with yes."""

    @abstractmethod
    async def press_secondary_button(self) -> None:
        """Answer the pending decision with no."""

    @abstractmethod
    async def get_custom_instructions(self) -> str | None:
        """Return the agent's custom instructions."""

    @abstractmethod
    async def set_custom_instructions(self, instructions: str) -> None:
        """Replace the agent's custom instructions."""
