"""Message transformer tests."""

from agent_relay.schemas.agent import (
    ActionNotice,
    InvokeNotice,
    PartialMessage,
    StateSnapshot,
    UnknownAgentEvent,
    parse_agent_event,
)
from agent_relay.schemas.events import DECISION_ACTION
from agent_relay.services.transformer import latest_decision, latest_say, transform


def _dump(events) -> list[dict]:
    return [e.model_dump(exclude_none=True) for e in events]


def _snapshot(*messages) -> StateSnapshot:
    return StateSnapshot.model_validate({"type": "state", "messages": list(messages)})


def test_snapshot_with_directive_emits_chunk_end_and_prompt():
    snap = _snapshot({
        "type": "say",
        "say": "text",
        "text": 'Hello {"question":"proceed?","options":["yes"]} world',
        "partial": False,
    })
    assert _dump(transform(snap)) == [
        {"type": "response", "response": "Hello  world"},
        {"type": "responseEnd"},
        {"type": "action", "action": DECISION_ACTION},
    ]


def test_snapshot_uses_only_latest_say():
    snap = _snapshot(
        {"type": "say", "text": "first"},
        {"type": "say", "text": "second", "partial": True},
        {"type": "say", "text": ""},
    )
    assert _dump(transform(snap)) == [{"type": "response", "response": "second"}]


def test_partial_snapshot_has_no_end():
    snap = _snapshot({"type": "say", "text": "thinking", "partial": True})
    assert _dump(transform(snap)) == [{"type": "response", "response": "thinking"}]


def test_snapshot_directive_only_still_ends_turn():
    snap = _snapshot({"type": "say", "text": '{"question":"go?","options":["y"]}'})
    assert _dump(transform(snap)) == [
        {"type": "responseEnd"},
        {"type": "action", "action": DECISION_ACTION},
    ]


def test_followup_ask_emits_single_prompt():
    snap = _snapshot(
        {"type": "say", "text": "Need input"},
        {"type": "ask", "ask": "followup", "text": "Which file?"},
        {"type": "ask", "ask": "plan_mode_respond"},
    )
    events = _dump(transform(snap))
    assert events.count({"type": "action", "action": DECISION_ACTION}) == 1


def test_other_asks_do_not_prompt():
    snap = _snapshot({"type": "ask", "ask": "command", "text": "npm test"})
    assert transform(snap) == []


def test_empty_snapshot():
    assert transform(StateSnapshot()) == []


def test_partial_message_is_sanitized_without_end():
    event = PartialMessage.model_validate({
        "type": "partialMessage",
        "message": {"type": "say", "text": 'Working {"question":"x"} on it', "partial": True},
    })
    assert _dump(transform(event)) == [{"type": "response", "response": "Working  on it"}]


def test_partial_message_empty_after_sanitize():
    event = PartialMessage.model_validate({
        "type": "partialMessage",
        "message": {"type": "say", "text": '{"question":"x"}'},
    })
    assert transform(event) == []


def test_action_passes_through():
    assert _dump(transform(ActionNotice(action="didBecomeVisible"))) == [
        {"type": "action", "action": "didBecomeVisible"}
    ]


def test_invoke_send_message_passes_through():
    event = InvokeNotice(invoke="sendMessage", text='raw {"question":"kept"}')
    assert _dump(transform(event)) == [
        {"type": "invoke", "invoke": "sendMessage", "text": 'raw {"question":"kept"}'}
    ]


def test_other_invokes_are_dropped():
    assert transform(InvokeNotice(invoke="sendMessage")) == []
    assert transform(InvokeNotice(invoke="primaryButtonClick")) == []


def test_unknown_event_is_ignored():
    event = parse_agent_event({"type": "theme", "text": "dark"})
    assert isinstance(event, UnknownAgentEvent)
    assert transform(event) == []


def test_latest_helpers_report_positions():
    snap = _snapshot(
        {"type": "say", "text": "a"},
        {"type": "ask", "ask": "followup"},
        {"type": "say", "text": "b"},
        {"type": "say"},
    )
    assert latest_say(snap)[0] == 2
    assert latest_decision(snap)[0] == 1
    assert latest_decision(_snapshot({"type": "say", "text": "plain"})) is None
