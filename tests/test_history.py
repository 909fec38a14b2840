"""Tests for the message log and entry models."""

from __future__ import annotations

import json

from chatloop.entries import CANCELLED_CALL_ERROR, Entry, ToolCallRequest
from chatloop.history import MessageLog


def _conversation() -> list[Entry]:
    return [
        Entry.user("list files in /tmp"),
        Entry.assistant_tool_calls([
            ToolCallRequest(id="c1", function_name="list_directory", arguments_json='{"path": "/tmp"}'),
        ]),
        Entry.tool_result("c1", "a.txt\nb.txt", name="list_directory"),
        Entry.assistant_text("There are two files."),
        Entry.user("thanks"),
        Entry.assistant_text("You're welcome."),
    ]


class TestEntries:
    def test_tool_result_success_and_error_payloads(self):
        ok = Entry.tool_result("c1", "fine", name="shell")
        bad = Entry.tool_result("c2", "exit 1", success=False)
        assert json.loads(ok.content) == {"output": "fine"}
        assert ok.name == "shell"
        assert json.loads(bad.content) == {"error": "exit 1"}

    def test_cancelled_result(self):
        entry = Entry.cancelled_result("c9")
        assert entry.role == "tool"
        assert entry.tool_call_id == "c9"
        assert json.loads(entry.content) == {"error": CANCELLED_CALL_ERROR}

    def test_parsed_arguments(self):
        assert ToolCallRequest(id="x", function_name="f", arguments_json='{"a": 1}').parsed_arguments() == {"a": 1}
        assert ToolCallRequest(id="x", function_name="f", arguments_json="[1]").parsed_arguments() is None
        assert ToolCallRequest(id="x", function_name="f", arguments_json="{bad").parsed_arguments() is None


class TestMessageLog:
    def test_seeded_with_system_prompt(self):
        log = MessageLog(system_prompt="You are terse.")
        assert log.entries() == [Entry.system("You are terse.")]

    def test_append_and_extend_preserve_order(self):
        log = MessageLog()
        log.append(Entry.user("a"))
        log.extend([Entry.assistant_text("b"), Entry.user("c")])
        assert [e.content for e in log] == ["a", "b", "c"]
        assert len(log) == 3
        assert log[1].content == "b"

    def test_entries_returns_copy(self):
        log = MessageLog()
        snapshot = log.entries()
        snapshot.append(Entry.user("x"))
        assert len(log) == 0

    def test_clear_keeps_system_prompt(self):
        log = MessageLog(system_prompt="sys")
        log.extend(_conversation())
        log.clear()
        assert log.entries() == [Entry.system("sys")]
        log.clear(keep_system=False)
        assert len(log) == 0

    def test_truncate_turns_cuts_at_user_boundary(self):
        log = MessageLog(system_prompt="sys")
        log.extend(_conversation())
        removed = log.truncate_turns(1)
        assert removed == 2
        assert [e.role for e in log] == ["system", "user", "assistant", "tool", "assistant"]

    def test_truncate_zero_keeps_only_system(self):
        log = MessageLog(system_prompt="sys")
        log.extend(_conversation())
        log.truncate_turns(0)
        assert [e.role for e in log] == ["system"]

    def test_last_assistant_text_skips_tool_call_entries(self):
        log = MessageLog()
        log.extend(_conversation()[:3])
        assert log.last_assistant_text() is None
        log.extend(_conversation()[3:])
        assert log.last_assistant_text() == "You're welcome."

    def test_window_unlimited(self):
        log = MessageLog()
        log.extend(_conversation())
        assert log.window(0) == _conversation()

    def test_window_starts_at_user_entry(self):
        log = MessageLog(system_prompt="sys")
        log.extend(_conversation())
        windowed = log.window(3)
        assert windowed[0].role == "system"
        assert [e.content for e in windowed[1:]] == ["thanks", "You're welcome."]

    def test_window_never_splits_tool_group(self):
        log = MessageLog()
        log.extend(_conversation()[:4])
        windowed = log.window(2)
        # Only one user boundary exists; the whole turn is kept.
        assert windowed == _conversation()[:4]

    def test_save_load_round_trip(self, tmp_path):
        log = MessageLog(system_prompt="sys")
        log.extend(_conversation())
        log.append(Entry.assistant_tool_calls([
            ToolCallRequest(id="c2", function_name="write_file",
                            arguments_json='{"path": "x", "content": "line\\n\\"quoted\\""}'),
        ]))
        log.append(Entry.cancelled_result("c2"))
        path = tmp_path / "nested" / "history.json"

        log.save(path)
        restored = MessageLog.load(path)

        assert restored.entries() == log.entries()
        assert restored[-2].tool_calls[0].arguments_json == log[-2].tool_calls[0].arguments_json

    def test_replace(self):
        log = MessageLog()
        log.extend(_conversation())
        log.replace([Entry.user("fresh")])
        assert [e.content for e in log] == ["fresh"]


def test_issues_tool_calls():
    assert Entry.assistant_tool_calls([
        ToolCallRequest(id="c1", function_name="shell"),
    ]).issues_tool_calls
    assert not Entry.assistant_text("hi").issues_tool_calls
    assert not Entry.user("hi").issues_tool_calls
