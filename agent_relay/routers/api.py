"""HTTP control surface — the same operations as the WebSocket commands."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from agent_relay.schemas.api import (
    ActionResult,
    ApiIndex,
    EndpointInfo,
    InstructionsRequest,
    InstructionsResult,
    SendMessageRequest,
    StartTaskRequest,
)
from agent_relay.services.relay_server import RelayServer, get_relay

logger = logging.getLogger(__name__)

router = APIRouter()

ENDPOINTS = [
    EndpointInfo(path="/health", method="GET", description="Check server health"),
    EndpointInfo(path="/api/custom-instructions", method="GET", description="Get custom instructions"),
    EndpointInfo(path="/api/custom-instructions", method="POST", description="Set custom instructions"),
    EndpointInfo(path="/api/start-task", method="POST", description="Start a new task"),
    EndpointInfo(path="/api/send-message", method="POST", description="Send a message to the current task"),
    EndpointInfo(path="/api/press-primary-button", method="POST", description="Press the primary button (Yes)"),
    EndpointInfo(path="/api/press-secondary-button", method="POST", description="Press the secondary button (No)"),
]


def _result(status_code: int, success: bool, error: str | None = None) -> JSONResponse:
    body = ActionResult(success=success, error=error).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


async def _run(label: str, operation: Callable[..., Awaitable[Any]], *args: Any) -> JSONResponse:
    try:
        await operation(*args)
    except Exception as exc:
        logger.warning("Error %s: %s", label, exc)
        return _result(500, False, str(exc))
    return _result(200, True)


@router.get("", response_model=ApiIndex)
async def api_index():
    """List the available endpoints."""
    return ApiIndex(endpoints=ENDPOINTS)


# ── Custom instructions ──────────────────────────────────────────────


@router.get("/custom-instructions", response_model=InstructionsResult)
async def get_custom_instructions(relay: RelayServer = Depends(get_relay)):
    try:
        instructions = await relay.agent.get_custom_instructions()
    except Exception as exc:
        logger.warning("Error getting custom instructions: %s", exc)
        return _result(500, False, str(exc))
    return InstructionsResult(success=True, instructions=instructions)


@router.post("/custom-instructions", response_model=ActionResult)
async def set_custom_instructions(
    body: InstructionsRequest, relay: RelayServer = Depends(get_relay)
):
    if not body.instructions:
        return _result(400, False, "Missing required parameter: instructions")
    return await _run(
        "setting custom instructions", relay.agent.set_custom_instructions, body.instructions
    )


# ── Task control ─────────────────────────────────────────────────────


@router.post("/start-task", response_model=ActionResult)
async def start_task(body: StartTaskRequest, relay: RelayServer = Depends(get_relay)):
    if not body.task:
        return _result(400, False, "Missing required parameter: task")
    logger.info("Starting new task via API: %s...", body.task[:50])
    return await _run("starting task", relay.agent.start_task, body.task, body.images)


@router.post("/send-message", response_model=ActionResult)
async def send_message(body: SendMessageRequest, relay: RelayServer = Depends(get_relay)):
    if not body.message:
        return _result(400, False, "Missing required parameter: message")
    logger.info("Sending message via API: %s...", body.message[:50])
    return await _run("sending message", relay.agent.send_message, body.message, body.images)


@router.post("/press-primary-button", response_model=ActionResult)
async def press_primary_button(relay: RelayServer = Depends(get_relay)):
    logger.info("Pressing primary button via API")
    return await _run("pressing primary button", relay.agent.press_primary_button)


@router.post("/press-secondary-button", response_model=ActionResult)
async def press_secondary_button(relay: RelayServer = Depends(get_relay)):
    logger.info("Pressing secondary button via API")
    return await _run("pressing secondary button", relay.agent.press_secondary_button)
