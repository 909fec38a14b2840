"""Assemble one streamed model turn into text or a batch of tool calls."""

from __future__ import annotations

import enum
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Sequence

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessageChunk, BaseMessage

from .entries import ToolCallRequest
from .errors import IncompleteStreamError, ProtocolError, StreamTransportError
from .events import ResponseEvent, TextDelta, ToolCallReady
from .pending import PendingCallTracker
from .provider_contracts import (
    FINISH_STOP,
    FINISH_TOOL_CALLS,
    ProviderContract,
    get_provider_contract,
)

logger = logging.getLogger("chatloop")

_REPLACEMENT_CHAR = "\ufffd"


class TurnMode(str, enum.Enum):
    UNDETERMINED = "undetermined"
    TEXT = "text"
    TOOL_CALLS = "toolcalls"


@dataclass
class AssembledTurn:
    """The committed outcome of one stream."""

    mode: TurnMode
    finish_reason: str
    content: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)

    @property
    def is_tool_calls(self) -> bool:
        return self.mode is TurnMode.TOOL_CALLS


@dataclass
class _CallBuffer:
    id: str
    name: str = ""
    arguments: str = ""


def sanitize_delta(text: str) -> str:
    """Strip U+FFFD replacement characters from streaming deltas."""
    if _REPLACEMENT_CHAR not in text:
        return text
    logger.warning("Stripped %d U+FFFD from delta: %r",
                   text.count(_REPLACEMENT_CHAR), text[:200])
    return text.replace(_REPLACEMENT_CHAR, "")


def _get(obj: Any, key: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


class TurnAssembler:
    """Consume a single stream of chunks and produce an :class:`AssembledTurn`.

    Text fragments are emitted live as cumulative :class:`TextDelta` events.
    The first tool-call fragment locks the turn into tool-call mode; from then
    on text is discarded and argument fragments are buffered per call id.
    A turn is only finished by an explicit finish marker.

    One assembler handles one turn; create a new one per stream.
    """

    def __init__(
        self,
        tracker: PendingCallTracker,
        emit: Callable[[ResponseEvent], Any],
        *,
        contract: ProviderContract | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.tracker = tracker
        self.emit = emit
        self.contract = contract or get_provider_contract("openai")
        self.clock = clock
        self.mode = TurnMode.UNDETERMINED
        self.role = "assistant"
        self.content = ""
        self._calls: dict[str, _CallBuffer] = {}
        self._index_ids: dict[int, str] = {}
        self._last_id: str | None = None
        self._started_at = clock()

    @property
    def elapsed_ms(self) -> int:
        return int((self.clock() - self._started_at) * 1000)

    async def run(
        self,
        llm: BaseChatModel,
        messages: Sequence[BaseMessage],
    ) -> AssembledTurn:
        """Open the stream, consume it and return the finished turn.

        Raises:
            StreamTransportError: The stream could not be opened or a receive failed.
            IncompleteStreamError: The stream ended without a finish marker.
            ProtocolError: The finish marker does not fit the data received.
        """
        self._started_at = self.clock()
        try:
            stream: AsyncIterator[Any] = llm.astream(list(messages))
            iterator = stream.__aiter__()
        except Exception as exc:
            raise StreamTransportError(f"error creating stream: {exc}") from exc

        marker: str | None = None
        try:
            while marker is None:
                try:
                    chunk = await iterator.__anext__()
                except StopAsyncIteration:
                    break
                except Exception as exc:
                    logger.error("Error receiving from stream: %s", exc)
                    raise StreamTransportError(f"error receiving from stream: {exc}") from exc
                marker = self.feed(chunk)
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

        if marker is None:
            raise IncompleteStreamError(
                f"stream ended without a finish marker (mode={self.mode.value})"
            )
        # No await past this point: tracker registration and the returned
        # turn must reach the caller together.
        return self.finish(marker)

    def feed(self, chunk: Any) -> str | None:
        """Apply one chunk; returns the finish marker when the chunk carries one."""
        if not isinstance(chunk, AIMessageChunk):
            return None

        tool_chunks = chunk.tool_call_chunks or []
        if tool_chunks and self.mode is not TurnMode.TOOL_CALLS:
            logger.debug("First tool call fragment; switching to tool call mode")
            self.mode = TurnMode.TOOL_CALLS

        delta = sanitize_delta(self.contract.text_delta(chunk))
        if delta:
            if self.mode is TurnMode.TOOL_CALLS:
                logger.debug("Ignoring %d chars of text in tool call mode", len(delta))
            else:
                self.mode = TurnMode.TEXT
                self.content += delta
                self.emit(TextDelta(
                    role=self.role,
                    accumulated_content=self.content,
                    elapsed_ms=self.elapsed_ms,
                ))

        for tc_chunk in tool_chunks:
            self._accumulate_tool_call(tc_chunk)

        marker = self.contract.finish_marker(chunk)
        if marker is None:
            return None
        return self.contract.resolve_finish(marker, tool_calls=self.mode is TurnMode.TOOL_CALLS)

    def _accumulate_tool_call(self, tc_chunk: Any) -> None:
        call_id = _get(tc_chunk, "id") or ""
        index = _get(tc_chunk, "index")

        if call_id:
            if call_id not in self._calls:
                logger.debug("New tool call buffer for id %s", call_id)
                self._calls[call_id] = _CallBuffer(id=call_id)
            if index is not None:
                self._index_ids[index] = call_id
        else:
            bound = self._index_ids.get(index) if index is not None else None
            call_id = bound or self._last_id or ""
            if not call_id:
                logger.debug("Dropping tool call fragment with no id to attach to")
                return

        buf = self._calls[call_id]
        name = _get(tc_chunk, "name")
        if name and not buf.name:
            buf.name = name
        args = _get(tc_chunk, "args")
        if args:
            buf.arguments += args
        self._last_id = call_id

    def finish(self, marker: str) -> AssembledTurn:
        """Finalize the turn for *marker* and emit tool call events if any."""
        if marker == FINISH_TOOL_CALLS:
            return self._finish_tool_calls(marker)

        if self.mode is TurnMode.TOOL_CALLS:
            raise ProtocolError(
                f"tool call turn closed with finish reason {marker!r}"
            )
        if marker != FINISH_STOP:
            logger.warning("Text turn finished with reason %r; keeping %d chars",
                           marker, len(self.content))
        mode = TurnMode.TEXT if self.content else self.mode
        return AssembledTurn(mode=mode, finish_reason=marker, content=self.content)

    def _finish_tool_calls(self, marker: str) -> AssembledTurn:
        calls: list[ToolCallRequest] = []
        for buf in self._calls.values():
            if not buf.name:
                logger.warning("Skipping tool call %s with no function name", buf.id)
                continue
            arguments = buf.arguments or "{}"
            try:
                json.loads(arguments)
            except json.JSONDecodeError:
                logger.warning("Tool call %s finalized with invalid JSON arguments", buf.id)
            calls.append(ToolCallRequest(
                id=buf.id,
                function_name=buf.name,
                arguments_json=arguments,
            ))

        if not calls:
            raise ProtocolError("finish reason 'tool_calls' but no tool calls were accumulated")

        for call in calls:
            self.tracker.register(call.id)
            self.emit(ToolCallReady(
                id=call.id,
                function_name=call.function_name,
                arguments_json=call.arguments_json,
                elapsed_ms=self.elapsed_ms,
            ))
        return AssembledTurn(
            mode=TurnMode.TOOL_CALLS,
            finish_reason=marker,
            tool_calls=calls,
        )
