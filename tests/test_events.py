from __future__ import annotations

import json
import logging

from chatloop.events import (
    FollowupComplete,
    TextDelta,
    ToolCallReady,
    TurnComplete,
    TurnError,
    deliver,
    event_to_dict,
)


def test_event_dicts_carry_type():
    assert event_to_dict(TextDelta(role="assistant", accumulated_content="Hi", elapsed_ms=12)) == {
        "type": "message",
        "role": "assistant",
        "accumulated_content": "Hi",
        "elapsed_ms": 12,
    }
    assert event_to_dict(FollowupComplete()) == {"type": "followup_complete"}
    assert event_to_dict(TurnComplete(content="done"))["type"] == "complete"
    assert event_to_dict(TurnError(code="stream_error", message="x"))["code"] == "stream_error"


def test_deliver_serializes_to_json():
    received: list[str] = []
    event = ToolCallReady(id="c1", function_name="shell", arguments_json='{"command": "ls"}', elapsed_ms=3)

    assert deliver(received.append, event) is True

    payload = json.loads(received[0])
    assert payload["type"] == "function_call"
    assert payload["arguments_json"] == '{"command": "ls"}'


def test_deliver_without_sink_drops_event():
    assert deliver(None, FollowupComplete()) is False


def test_unserializable_event_is_logged_and_dropped(caplog):
    received: list[str] = []
    event = TurnError(code="agent_error", message=object())  # type: ignore[arg-type]

    with caplog.at_level(logging.ERROR, logger="chatloop"):
        assert deliver(received.append, event) is False

    assert received == []
    assert "Failed to serialize error event" in caplog.text


def test_raising_sink_is_logged_and_dropped(caplog):
    def broken_sink(payload: str) -> None:
        raise ConnectionError("outbox closed")

    with caplog.at_level(logging.ERROR, logger="chatloop"):
        assert deliver(broken_sink, FollowupComplete()) is False

    assert "Sink failed to accept followup_complete event" in caplog.text
