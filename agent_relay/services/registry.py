"""Connection registry — live client sockets, replay log and fan-out.

Every connection gets its own outbound queue drained by a writer task.
``broadcast`` only enqueues, so a slow or stuck client never holds up the
caller or any other client, and events reach each client in the order they
were queued for it.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Protocol

from pydantic import BaseModel
from starlette.websockets import WebSocketState

from agent_relay.schemas.events import StatusEvent, encode_event

logger = logging.getLogger(__name__)

WELCOME_STATUS = "connected"


class ClientHandle(Protocol):
    """What the registry needs from a socket (Starlette's WebSocket fits)."""

    client_state: WebSocketState

    async def send_text(self, data: str) -> None: ...


def _is_writable(handle: Any) -> bool:
    if getattr(handle, "client_state", None) != WebSocketState.CONNECTED:
        return False
    # Server-side close flips application_state; fakes may not carry it
    app_state = getattr(handle, "application_state", WebSocketState.CONNECTED)
    return app_state == WebSocketState.CONNECTED


class _Connection:
    def __init__(self, handle: ClientHandle) -> None:
        self.handle = handle
        self.queue: asyncio.Queue[BaseModel] = asyncio.Queue()
        self.writer: asyncio.Task | None = None


class ConnectionRegistry:
    """Tracks live clients and keeps the last *max_history* broadcast events."""

    def __init__(self, max_history: int = 50) -> None:
        # Keyed by id(): Starlette sockets are Mappings and not hashable
        self._connections: dict[int, _Connection] = {}
        self._history: deque[BaseModel] = deque(maxlen=max_history)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    @property
    def history(self) -> list[BaseModel]:
        return list(self._history)

    def add_connection(self, handle: ClientHandle) -> None:
        """Register *handle*, replay history to it, then greet it.

        Replay and welcome are queued before the handle joins the broadcast
        set, so no live event can slip in between them. Must be called from
        the running event loop.
        """
        conn = _Connection(handle)
        for event in self._history:
            conn.queue.put_nowait(event)
        conn.queue.put_nowait(StatusEvent(status=WELCOME_STATUS))
        self._connections[id(handle)] = conn
        conn.writer = asyncio.create_task(self._drain(conn))
        logger.info(
            "Client connected (%d replayed, %d connected)",
            len(self._history), len(self._connections),
        )

    def remove_connection(self, handle: ClientHandle) -> None:
        conn = self._connections.pop(id(handle), None)
        if conn is None:
            return
        if conn.writer:
            conn.writer.cancel()
        logger.info("Client disconnected (%d connected)", len(self._connections))

    def send_to_client(self, handle: ClientHandle, event: BaseModel) -> None:
        """Queue *event* for one client; dropped if the client is gone."""
        conn = self._connections.get(id(handle))
        if conn is None:
            logger.debug("Dropping %s for unregistered client", event.type)
            return
        conn.queue.put_nowait(event)

    def broadcast(self, event: BaseModel) -> None:
        """Record *event* in the replay log and queue it for every client."""
        self._history.append(event)
        for conn in list(self._connections.values()):
            conn.queue.put_nowait(event)

    async def flush(self) -> None:
        """Wait until every queued event has been attempted."""
        await asyncio.gather(*(c.queue.join() for c in list(self._connections.values())))

    async def close(self) -> None:
        conns = list(self._connections.values())
        self._connections.clear()
        writers = [c.writer for c in conns if c.writer]
        for writer in writers:
            writer.cancel()
        await asyncio.gather(*writers, return_exceptions=True)

    # ── Internals ────────────────────────────────────────────────────

    async def _drain(self, conn: _Connection) -> None:
        while True:
            event = await conn.queue.get()
            try:
                await self._deliver(conn.handle, event)
            finally:
                conn.queue.task_done()

    @staticmethod
    async def _deliver(handle: ClientHandle, event: BaseModel) -> bool:
        if not _is_writable(handle):
            return False
        try:
            await handle.send_text(encode_event(event))
        except Exception as exc:
            logger.warning("Error sending message to client: %s", exc)
            return False
        return True
