"""FastAPI application entrypoint."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agent_relay.adapters.host import agent_host
from agent_relay.config import settings
from agent_relay.routers import api, ws
from agent_relay.services.registry import ConnectionRegistry
from agent_relay.services.relay_server import RelayServer

# ── Logging setup ────────────────────────────────────────────────────
_log_level = os.environ.get("RELAY_LOG_LEVEL", settings.log_level).upper()
logging.basicConfig(
    level=_log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
if settings.debug:
    logging.getLogger("agent_relay").setLevel(logging.DEBUG)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    relay = RelayServer(agent_host, ConnectionRegistry(max_history=settings.replay_buffer_size))
    app.state.relay = relay

    if settings.agent_auto_connect:
        try:
            await agent_host.connect()
        except Exception as exc:
            logger.warning("Agent host connection failed (non-fatal, will retry on demand): %s", exc)

    logger.info("Agent relay ready on port %d", settings.port)
    logger.info("  WebSocket: ws://%s:%d", settings.host, settings.port)
    logger.info("  HTTP:      http://%s:%d/api", settings.host, settings.port)

    yield

    # Shutdown
    await relay.close()
    await agent_host.disconnect()
    logger.info("Agent relay stopped")


app = FastAPI(
    title="Agent Relay",
    description="Relays an agent's event stream to WebSocket and HTTP clients",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(api.router, prefix="/api", tags=["api"])
app.include_router(ws.router, tags=["relay"])


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "service": "agent-relay",
        "agent": {"url": agent_host.url, "connected": agent_host.connected},
    }


def serve() -> None:
    """Run the relay with uvicorn on the configured host and port."""
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=_log_level.lower())
