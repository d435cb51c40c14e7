"""Agent host WebSocket adapter.

Talks to the process that runs the agent:
  - req/res pattern for the control operations
  - ``event`` frames carrying agent events, pushed to subscribers

Frames::

    → {"type": "req", "id": "...", "method": "startTask", "params": {...}}
    ← {"type": "res", "id": "...", "ok": true, "payload": {...}}
    ← {"type": "event", "event": "agent", "payload": {<agent event>}}
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any

import websockets
from websockets.asyncio.client import ClientConnection

from agent_relay.adapters.base import AgentController, AgentError
from agent_relay.config import settings

logger = logging.getLogger(__name__)

AGENT_EVENT = "agent"


class AgentHostAdapter(AgentController):
    """WebSocket client for the agent host process."""

    def __init__(self, url: str | None = None, *, timeout: float | None = None) -> None:
        super().__init__()
        self._url = url
        self._timeout = timeout
        self._ws: ClientConnection | None = None
        self._pending: dict[str, asyncio.Future[dict]] = {}
        self._listener_task: asyncio.Task | None = None
        self._connected = False

    @property
    def url(self) -> str:
        return self._url or settings.agent_ws_url

    @property
    def connected(self) -> bool:
        return self._connected

    # ── Connection lifecycle ─────────────────────────────────────────

    async def connect(self) -> None:
        if self._connected and self._ws and self._listener_task and not self._listener_task.done():
            return

        # If previously connected but listener died, clean up first
        if self._ws:
            try:
                await self._ws.close()
            except Exception:
                logger.debug("Ignoring error while closing stale agent host socket", exc_info=True)
            self._ws = None
            self._connected = False

        logger.info("Connecting to agent host at %s", self.url)
        self._ws = await websockets.connect(self.url)
        self._connected = True
        self._listener_task = asyncio.create_task(self._listen())
        logger.info("Connected to agent host")

    async def disconnect(self) -> None:
        self._connected = False
        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None
        if self._ws:
            await self._ws.close()
            self._ws = None

    # ── Core protocol ────────────────────────────────────────────────

    async def _listen(self) -> None:
        """Background loop: dispatch responses and events."""
        assert self._ws is not None
        try:
            async for raw in self._ws:
                try:
                    msg = json.loads(raw)
                except ValueError:
                    logger.warning("Ignoring non-JSON frame from agent host")
                    continue
                msg_type = msg.get("type")

                if msg_type == "res":
                    future = self._pending.get(msg.get("id"))
                    if future and not future.done():
                        future.set_result(msg)
                elif msg_type == "event":
                    if msg.get("event") == AGENT_EVENT and isinstance(msg.get("payload"), dict):
                        self.emit(msg["payload"])
                    else:
                        logger.debug("Ignoring host event %r", msg.get("event"))
        except websockets.ConnectionClosed:
            logger.warning("Agent host connection closed")
        finally:
            self._connected = False
            for future in self._pending.values():
                if not future.done():
                    future.set_exception(ConnectionError("Agent host connection closed"))

    async def _request(self, method: str, params: dict | None = None) -> dict:
        """Send a req and wait for the matching res."""
        if not self._ws or not self._connected:
            await self.connect()

        req_id = self._make_id()
        frame: dict[str, Any] = {"type": "req", "id": req_id, "method": method}
        if params:
            frame["params"] = params

        future: asyncio.Future[dict] = asyncio.get_running_loop().create_future()
        self._pending[req_id] = future

        timeout = self._timeout or settings.agent_request_timeout
        try:
            await self._ws.send(json.dumps(frame))  # type: ignore[union-attr]
            result = await asyncio.wait_for(future, timeout=timeout)
        except TimeoutError as exc:
            raise AgentError(f"{method} timed out after {timeout:g}s") from exc
        finally:
            self._pending.pop(req_id, None)

        if not result.get("ok"):
            error = result.get("error")
            if isinstance(error, dict):
                error = error.get("message") or error
            raise AgentError(str(error or "request failed"))
        return result.get("payload") or {}

    # ── Public API ───────────────────────────────────────────────────

    async def start_task(self, task: str, images: list[str] | None = None) -> None:
        params: dict[str, Any] = {"task": task}
        if images:
            params["images"] = images
        await self._request("startTask", params)

    async def send_message(self, message: str, images: list[str] | None = None) -> None:
        params: dict[str, Any] = {"message": message}
        if images:
            params["images"] = images
        await self._request("sendMessage", params)

    async def press_primary_button(self) -> None:
        await self._request("pressPrimaryButton")

    async def press_secondary_button(self) -> None:
        await self._request("pressSecondaryButton")

    async def get_custom_instructions(self) -> str | None:
        payload = await self._request("getCustomInstructions")
        return payload.get("instructions")

    async def set_custom_instructions(self, instructions: str) -> None:
        await self._request("setCustomInstructions", {"instructions": instructions})

    # ── Helpers ──────────────────────────────────────────────────────

    @staticmethod
    def _make_id() -> str:
        return str(uuid.uuid4())


# Singleton — shared across the application
agent_host = AgentHostAdapter()
