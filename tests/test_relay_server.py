"""Relay server tests — agent event intake and inbound command handling."""

import json

import pytest

from agent_relay.schemas.events import DECISION_ACTION

SAY_WITH_QUESTION = {
    "type": "state",
    "messages": [
        {
            "ts": 1,
            "type": "say",
            "say": "text",
            "text": 'Hello {"question":"proceed?","options":["yes"]} world',
            "partial": False,
        }
    ],
}


def _history(relay) -> list[dict]:
    return [e.model_dump(exclude_none=True) for e in relay.registry.history]


# ── Agent → clients ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_agent_events_reach_connected_clients(relay, agent, make_socket):
    sock = make_socket()
    relay.connect(sock)

    agent.emit(SAY_WITH_QUESTION)
    await relay.registry.flush()

    assert sock.sent[1:] == [
        {"type": "response", "response": "Hello  world"},
        {"type": "responseEnd"},
        {"type": "action", "action": DECISION_ACTION},
    ]


@pytest.mark.asyncio
async def test_repeated_snapshot_is_not_rebroadcast(relay):
    relay.receive_event(SAY_WITH_QUESTION)
    relay.receive_event(SAY_WITH_QUESTION)

    assert [e["type"] for e in _history(relay)] == ["response", "responseEnd", "action"]


@pytest.mark.asyncio
async def test_growing_partial_snapshot_streams_each_version(relay):
    for text, partial in [("Hel", True), ("Hello", True), ("Hello", False)]:
        relay.receive_event({
            "type": "state",
            "messages": [{"ts": 7, "type": "say", "text": text, "partial": partial}],
        })

    assert _history(relay) == [
        {"type": "response", "response": "Hel"},
        {"type": "response", "response": "Hello"},
        {"type": "response", "response": "Hello"},
        {"type": "responseEnd"},
    ]


@pytest.mark.asyncio
async def test_new_decision_entry_prompts_again(relay):
    first = {
        "type": "state",
        "messages": [{"ts": 1, "type": "ask", "ask": "followup", "text": "Continue?"}],
    }
    second = {
        "type": "state",
        "messages": first["messages"] + [
            {"ts": 2, "type": "say", "text": "ok", "partial": False},
            {"ts": 3, "type": "ask", "ask": "followup", "text": "And now?"},
        ],
    }
    relay.receive_event(first)
    relay.receive_event(first)
    relay.receive_event(second)

    prompts = [e for e in _history(relay) if e == {"type": "action", "action": DECISION_ACTION}]
    assert len(prompts) == 2


@pytest.mark.asyncio
async def test_malformed_agent_event_is_dropped(relay):
    relay.receive_event({"type": "state", "messages": "not a list"})
    relay.receive_event({"type": "somethingNew"})
    assert relay.registry.history == []


@pytest.mark.asyncio
async def test_partial_message_and_invoke(relay):
    relay.receive_event({
        "type": "partialMessage",
        "message": {"type": "say", "text": "streaming", "partial": True},
    })
    relay.receive_event({"type": "invoke", "invoke": "sendMessage", "text": "hi"})
    relay.receive_event({"type": "action", "action": "chatButtonClicked"})

    assert _history(relay) == [
        {"type": "response", "response": "streaming"},
        {"type": "invoke", "invoke": "sendMessage", "text": "hi"},
        {"type": "action", "action": "chatButtonClicked"},
    ]


# ── Clients → agent ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_unknown_command_answers_only_sender(relay, make_socket):
    sender, other = make_socket(), make_socket()
    relay.connect(sender)
    relay.connect(other)

    await relay.handle_message(sender, json.dumps({"type": "bogus"}))
    await relay.registry.flush()

    assert sender.sent[-1] == {"type": "error", "error": "Unknown message type: bogus"}
    assert other.types == ["status"]


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"type": "startTask", "task": 5}'])
async def test_invalid_frames_get_format_error(relay, make_socket, raw):
    sock = make_socket()
    relay.connect(sock)

    await relay.handle_message(sock, raw)
    await relay.registry.flush()

    assert sock.sent[-1] == {"type": "error", "error": "Invalid message format"}


@pytest.mark.asyncio
async def test_ping_gets_pong(relay, make_socket):
    sock = make_socket()
    relay.connect(sock)

    await relay.handle_message(sock, '{"type": "ping"}')
    await relay.registry.flush()

    assert sock.sent[-1]["type"] == "pong"
    assert isinstance(sock.sent[-1]["timestamp"], int)


@pytest.mark.asyncio
async def test_control_commands_reach_agent(relay, agent, make_socket):
    sock = make_socket()
    relay.connect(sock)

    await relay.handle_message(sock, json.dumps({"type": "startTask", "task": "build it"}))
    await relay.handle_message(
        sock, json.dumps({"type": "sendMessage", "message": "more", "images": ["a.png"]})
    )
    await relay.handle_message(sock, '{"type": "pressPrimaryButton"}')
    await relay.handle_message(sock, '{"type": "pressSecondaryButton"}')

    assert agent.calls == [
        ("start_task", "build it", None),
        ("send_message", "more", ["a.png"]),
        ("press_primary_button",),
        ("press_secondary_button",),
    ]


@pytest.mark.asyncio
async def test_missing_task_is_reported(relay, agent, make_socket):
    sock = make_socket()
    relay.connect(sock)

    await relay.handle_message(sock, '{"type": "startTask"}')
    await relay.handle_message(sock, '{"type": "sendMessage", "message": ""}')
    await relay.registry.flush()

    assert agent.calls == []
    assert sock.sent[-2:] == [
        {"type": "error", "error": "Missing required parameter: task"},
        {"type": "error", "error": "Missing required parameter: message"},
    ]


@pytest.mark.asyncio
async def test_agent_failure_goes_to_requester(relay, agent, make_socket):
    agent.fail_with = "no workspace open"
    sender, other = make_socket(), make_socket()
    relay.connect(sender)
    relay.connect(other)

    await relay.handle_message(sender, '{"type": "startTask", "task": "x"}')
    await relay.registry.flush()

    assert sender.sent[-1] == {
        "type": "error",
        "error": "Failed to start task: no workspace open",
    }
    assert other.types == ["status"]
    assert relay.registry.connection_count == 2


@pytest.mark.asyncio
async def test_close_unsubscribes_from_agent(agent):
    from agent_relay.services.relay_server import RelayServer

    server = RelayServer(agent)
    await server.close()
    agent.emit({"type": "action", "action": "late"})
    assert server.registry.history == []
