"""Base provider contract for reading streamed chunks."""

from __future__ import annotations

from typing import Any

from langchain_core.messages import AIMessageChunk

FINISH_STOP = "stop"
FINISH_TOOL_CALLS = "tool_calls"


class ProviderContract:
    """Default contract: OpenAI-style ``finish_reason`` in response metadata."""

    finish_key = "finish_reason"
    finish_aliases: dict[str, str] = {}

    def __init__(self, provider: str) -> None:
        key = (provider or "").strip().lower()
        self.provider = key or "unknown"

    def finish_marker(self, chunk: AIMessageChunk) -> str | None:
        """Return the normalized finish marker carried by *chunk*, if any."""
        metadata = chunk.response_metadata or {}
        raw = metadata.get(self.finish_key)
        if not raw:
            return None
        marker = str(raw).strip().lower()
        return self.finish_aliases.get(marker, marker)

    def resolve_finish(self, marker: str, *, tool_calls: bool) -> str:
        """Adjust *marker* for the mode the turn is in; most providers need nothing."""
        return marker

    def text_delta(self, chunk: AIMessageChunk) -> str:
        content = chunk.content
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return "".join(
                self.extract_text_delta(block) if isinstance(block, dict) else str(block)
                for block in content
            )
        return ""

    def extract_text_delta(self, block: dict[str, Any]) -> str:
        if block.get("type") != "text":
            return ""
        return str(block.get("text", ""))
