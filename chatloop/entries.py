"""Conversation entry models shared by the log, projector and session."""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, Field

Role = Literal["user", "assistant", "tool", "system"]

CANCELLED_CALL_ERROR = "execution cancelled by user"


class ToolCallRequest(BaseModel):
    """A finalized request from the model to invoke one tool."""

    id: str
    type: Literal["function"] = "function"
    function_name: str
    arguments_json: str = "{}"

    def parsed_arguments(self) -> dict[str, Any] | None:
        """Return the decoded arguments, or None when they are not a JSON object."""
        try:
            parsed = json.loads(self.arguments_json or "{}")
        except json.JSONDecodeError:
            return None
        return parsed if isinstance(parsed, dict) else None


class Entry(BaseModel):
    """One conversation unit in the message log."""

    role: Role
    content: str = ""
    tool_calls: list[ToolCallRequest] = Field(default_factory=list)
    tool_call_id: str | None = None
    name: str | None = None

    @property
    def issues_tool_calls(self) -> bool:
        return self.role == "assistant" and bool(self.tool_calls)

    @classmethod
    def user(cls, content: str) -> Entry:
        return cls(role="user", content=content)

    @classmethod
    def system(cls, content: str) -> Entry:
        return cls(role="system", content=content)

    @classmethod
    def assistant_text(cls, content: str) -> Entry:
        return cls(role="assistant", content=content)

    @classmethod
    def assistant_tool_calls(cls, calls: list[ToolCallRequest]) -> Entry:
        return cls(role="assistant", content="", tool_calls=list(calls))

    @classmethod
    def tool_result(
        cls,
        tool_call_id: str,
        output: str,
        *,
        success: bool = True,
        name: str | None = None,
    ) -> Entry:
        """Build a tool entry whose content is ``{"output": ...}`` or ``{"error": ...}``."""
        key = "output" if success else "error"
        return cls(
            role="tool",
            content=json.dumps({key: output}),
            tool_call_id=tool_call_id,
            name=name,
        )

    @classmethod
    def cancelled_result(cls, tool_call_id: str) -> Entry:
        return cls.tool_result(tool_call_id, CANCELLED_CALL_ERROR, success=False)
