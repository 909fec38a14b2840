"""Stream and sink helpers shared by the test modules."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Iterable

from langchain_core.messages import AIMessageChunk, ToolCallChunk

from chatloop.config import SessionConfig


def make_config(**overrides) -> SessionConfig:
    """Create a SessionConfig with sensible test defaults."""
    return SessionConfig({
        "provider": "openai",
        "model": "gpt-4o",
        "api_key": "test-key",
        **overrides,
    })


def text_chunk(text: str) -> AIMessageChunk:
    return AIMessageChunk(content=text, tool_call_chunks=[])


def tool_fragment(
    tc_id: str | None,
    args: str = "",
    *,
    name: str | None = None,
    index: int | None = 0,
) -> AIMessageChunk:
    """Create an AIMessageChunk carrying one (possibly partial) tool call fragment."""
    return AIMessageChunk(
        content="",
        tool_call_chunks=[
            ToolCallChunk(name=name, args=args, id=tc_id, index=index),
        ],
    )


def tool_call_chunk(name: str, args: dict, tc_id: str = "tc-1", index: int = 0) -> AIMessageChunk:
    """Create an AIMessageChunk containing a single complete tool call."""
    return tool_fragment(tc_id, json.dumps(args), name=name, index=index)


def finish_chunk(reason: str = "stop", key: str = "finish_reason") -> AIMessageChunk:
    return AIMessageChunk(content="", response_metadata={key: reason})


def text_turn(*parts: str) -> list[AIMessageChunk]:
    return [*(text_chunk(p) for p in parts), finish_chunk("stop")]


class FakeChatModel:
    """Stands in for a bound chat model; replays one scripted stream per call.

    A script item may be a chunk, an exception instance (raised at that
    point), or an ``asyncio.Event`` that the stream waits on.
    """

    def __init__(self, scripts: Iterable[list[Any]] = ()) -> None:
        self.scripts = list(scripts)
        self.calls: list[list[Any]] = []

    def add(self, script: list[Any]) -> None:
        self.scripts.append(script)

    async def astream(self, messages):
        self.calls.append(list(messages))
        script = self.scripts.pop(0)
        for item in script:
            if isinstance(item, BaseException):
                raise item
            if isinstance(item, asyncio.Event):
                await item.wait()
                continue
            yield item


class EventRecorder:
    """Sink that records decoded events."""

    def __init__(self) -> None:
        self.raw: list[str] = []

    def __call__(self, payload: str) -> None:
        self.raw.append(payload)

    @property
    def events(self) -> list[dict[str, Any]]:
        return [json.loads(p) for p in self.raw]

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [e for e in self.events if e["type"] == event_type]

    @property
    def types(self) -> list[str]:
        return [e["type"] for e in self.events]


