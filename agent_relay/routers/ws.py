"""Relay WebSocket endpoint — one socket per client, all clients share the stream."""

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from agent_relay.services.relay_server import RelayServer, get_relay

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/")
@router.websocket("/ws")
async def relay_ws(ws: WebSocket, relay: RelayServer = Depends(get_relay)):
    """WebSocket relay.

    Client sends: {"type": "ping|startTask|sendMessage|pressPrimaryButton|pressSecondaryButton", ...}
    Server sends: {"type": "status|response|responseEnd|action|invoke|error|pong", ...}

    A new connection first receives the replay buffer, then a
    ``connected`` status, then live events.
    """
    await ws.accept()
    relay.connect(ws)
    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw = message.get("text")
            if raw is None:
                # Binary frames carry the same JSON; undecodable bytes fail parsing
                raw = (message.get("bytes") or b"").decode("utf-8", "replace")
            await relay.handle_message(ws, raw)
    except WebSocketDisconnect:
        logger.info("Relay WS disconnected")
    finally:
        relay.disconnect(ws)
