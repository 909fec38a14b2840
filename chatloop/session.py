"""Session orchestrator: drives turns, commits them and reconciles tool calls."""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage

from .assembler import AssembledTurn, TurnAssembler
from .config import SessionConfig
from .entries import Entry
from .errors import ChatloopError, FollowupLimitError
from .events import (
    EventSink,
    FollowupComplete,
    ResponseEvent,
    TurnComplete,
    TurnError,
    deliver,
)
from .history import MessageLog
from .pending import PendingCallTracker
from .projection import to_langchain_messages
from .provider_contracts import get_provider_contract
from .providers import create_chat_model
from .tools import tool_schemas

logger = logging.getLogger("chatloop")


class SessionState(str, enum.Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    AWAITING_TOOL_RESULTS = "awaiting_tool_results"
    CANCELLED = "cancelled"


class TurnStatus(str, enum.Enum):
    COMPLETED = "completed"
    TOOL_CALLS = "tool_calls"
    WAITING = "waiting"
    NO_SINK = "no_sink"
    STALE = "stale"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class TurnResult:
    status: TurnStatus
    turn: AssembledTurn | None = None
    error: ChatloopError | None = None


class SessionOrchestrator:
    """Coordinates one conversation with a streaming, tool-calling model.

    At most one turn streams at a time; starting a new one cancels the
    previous. Two lock domains are kept apart: ``_stream_lock`` guards the
    active task, the sink and the state, while the pending-call tracker has
    its own lock so reporting a tool result never waits on cancellation
    bookkeeping.

    All coroutines must run on one event loop. ``cancel`` and
    ``finalize_interaction`` may be called from other threads.
    """

    def __init__(
        self,
        config: SessionConfig,
        llm: BaseChatModel | None = None,
        *,
        history: MessageLog | None = None,
        sink: EventSink | None = None,
    ) -> None:
        config.validate()
        self.config = config
        self.session_id = str(uuid.uuid4())
        self.llm = llm if llm is not None else create_chat_model(
            provider=config.provider,
            model=config.model,
            api_key=config.api_key,
            endpoint_url=config.endpoint_url,
            temperature=config.temperature,
            tools=tool_schemas(config.tools),
        )
        self.contract = get_provider_contract(config.provider)
        self.history = history if history is not None else self._initial_history()
        self.pending = PendingCallTracker()

        self._stream_lock = threading.Lock()
        self._active_task: asyncio.Task[AssembledTurn] | None = None
        self._sink = sink
        self._state = SessionState.IDLE
        self._followup_depth = 0

    def _initial_history(self) -> MessageLog:
        path = self.config.history_path
        if path and Path(path).is_file():
            logger.info("Restoring history from %s", path)
            return MessageLog.load(path)
        return MessageLog(system_prompt=self.config.system_prompt)

    @property
    def state(self) -> SessionState:
        with self._stream_lock:
            return self._state

    def _set_state(self, state: SessionState) -> None:
        with self._stream_lock:
            self._state = state

    def set_sink(self, sink: EventSink | None) -> None:
        with self._stream_lock:
            self._sink = sink

    def _emit(self, event: ResponseEvent) -> None:
        with self._stream_lock:
            sink = self._sink
        deliver(sink, event)

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def submit_user_turn(
        self,
        entries: Entry | str | Sequence[Entry],
        sink: EventSink | None = None,
    ) -> TurnResult:
        """Start a new turn with *entries* after cancelling any turn in flight.

        Tool calls still pending from an abandoned turn are answered with a
        synthetic cancellation result before the new entries are appended.
        """
        if sink is not None:
            self.set_sink(sink)
        await self._cancel_active()

        self._reconcile_pending()
        if isinstance(entries, str):
            entries = [Entry.user(entries)]
        elif isinstance(entries, Entry):
            entries = [entries]
        if entries:
            self.history.extend(entries)
            logger.debug("Added %d new entries from user", len(entries))

        self._followup_depth = 0
        return await self._run_turn(followup=False)

    async def submit_tool_result(
        self,
        call_id: str,
        name: str,
        output: str,
        success: bool = True,
    ) -> TurnResult:
        """Commit a tool result and, once the batch is answered, run the follow-up turn.

        Unlike a follow-up per result, the follow-up waits until every call of
        the batch is answered so the model always receives a complete group.
        A result for an id that is not pending (already reconciled, answered
        twice or never issued) is dropped and returns ``STALE``.
        """
        logger.debug("Tool result for %s (%s), success=%s", call_id, name, success)
        if not self.pending.resolve(call_id):
            logger.warning("Dropping result for %s; the call is no longer pending", call_id)
            return TurnResult(TurnStatus.STALE)
        self.history.append(Entry.tool_result(call_id, output, success=success, name=name))

        with self._stream_lock:
            sink = self._sink
        if sink is None:
            logger.warning("No sink attached; not sending follow-up request for %s", call_id)
            return TurnResult(TurnStatus.NO_SINK)

        remaining = len(self.pending)
        if remaining:
            logger.debug("Waiting for %d more tool results before follow-up", remaining)
            return TurnResult(TurnStatus.WAITING)

        limit = self.config.max_followup_depth
        if limit > 0 and self._followup_depth >= limit:
            error = FollowupLimitError(
                f"exceeded maximum of {limit} follow-up turns without a final answer"
            )
            logger.warning("%s", error)
            self._emit(TurnError(code=error.code, message=str(error)))
            self._set_state(SessionState.IDLE)
            return TurnResult(TurnStatus.FAILED, error=error)

        self._followup_depth += 1
        return await self._run_turn(followup=True)

    async def _run_turn(self, *, followup: bool) -> TurnResult:
        await self._cancel_active()

        messages = to_langchain_messages(
            self.history.window(self.config.context_window_entries)
        )
        logger.debug("Sending %d messages (followup=%s)", len(messages), followup)
        assembler = TurnAssembler(self.pending, self._emit, contract=self.contract)
        task = asyncio.create_task(self._stream_and_commit(assembler, messages, followup))
        with self._stream_lock:
            self._active_task = task
            self._state = SessionState.STREAMING

        try:
            turn = await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            logger.info("Turn cancelled")
            return TurnResult(TurnStatus.CANCELLED)
        except ChatloopError as exc:
            logger.warning("Turn failed: %s", exc)
            self._set_state(SessionState.IDLE)
            self._emit(TurnError(code=exc.code, message=str(exc)))
            return TurnResult(TurnStatus.FAILED, error=exc)
        except Exception as exc:
            logger.exception("Unexpected error while running turn")
            error = ChatloopError(str(exc))
            self._set_state(SessionState.IDLE)
            self._emit(TurnError(code=error.code, message=str(error)))
            return TurnResult(TurnStatus.FAILED, error=error)
        finally:
            with self._stream_lock:
                if self._active_task is task:
                    self._active_task = None

        if turn.is_tool_calls:
            return TurnResult(TurnStatus.TOOL_CALLS, turn=turn)
        return TurnResult(TurnStatus.COMPLETED, turn=turn)

    async def _stream_and_commit(
        self,
        assembler: TurnAssembler,
        messages: list[BaseMessage],
        followup: bool,
    ) -> AssembledTurn:
        turn = await assembler.run(self.llm, messages)

        # Committed in the same step the stream finished, so a cancellation
        # can never observe registered calls without their assistant entry.
        if turn.is_tool_calls:
            self.history.append(Entry.assistant_tool_calls(turn.tool_calls))
            self._set_state(SessionState.AWAITING_TOOL_RESULTS)
            logger.info("Turn requested %d tool calls", len(turn.tool_calls))
            return turn

        if turn.content:
            self.history.append(Entry.assistant_text(turn.content))
        self._set_state(SessionState.IDLE)
        if followup:
            self._emit(FollowupComplete())
        else:
            self._emit(TurnComplete(content=turn.content))
        return turn

    def _reconcile_pending(self) -> None:
        abandoned = self.pending.drain_all()
        if not abandoned:
            return
        logger.info("Closing %d tool calls abandoned by a previous turn", len(abandoned))
        self.history.extend(Entry.cancelled_result(call_id) for call_id in abandoned)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    async def _cancel_active(self) -> None:
        with self._stream_lock:
            task = self._active_task
        if task is None or task.done():
            return
        logger.debug("Cancelling previous turn")
        task.cancel()
        await asyncio.wait({task})

    def cancel(self) -> None:
        """Cancel the streaming turn, if any. Pending calls are left for the next user turn."""
        with self._stream_lock:
            task = self._active_task
            if task is None or task.done():
                logger.debug("No active turn to cancel")
                return
            self._state = SessionState.CANCELLED
        _cancel_task(task)
        logger.info("Cancellation requested; %d tool calls still pending", len(self.pending))

    def finalize_interaction(self) -> None:
        """Detach the sink and stop any active turn."""
        with self._stream_lock:
            self._sink = None
        self.cancel()

    def close(self) -> None:
        self.cancel()
        if self.config.history_path:
            self.save_history()

    # ------------------------------------------------------------------
    # History management
    # ------------------------------------------------------------------

    def add_system_message(self, content: str) -> None:
        self.history.append(Entry.system(content))

    def last_assistant_message(self) -> str | None:
        return self.history.last_assistant_text()

    def clear_history(self) -> None:
        """Drop the conversation, keeping the system prompt."""
        self.cancel()
        self.pending.drain_all()
        self.history.clear()
        if self.config.history_path:
            self.save_history()

    def truncate_history(self, keep_turns: int) -> int:
        self.cancel()
        self.pending.drain_all()
        return self.history.truncate_turns(keep_turns)

    def save_history(self, path: str | Path | None = None) -> None:
        target = path or self.config.history_path
        if not target:
            raise ValueError("No history path configured")
        self.history.save(target)

    def load_history(self, path: str | Path) -> None:
        """Replace the log with the one stored at *path*."""
        self.cancel()
        self.pending.drain_all()
        self.history.replace(MessageLog.load(path).entries())


def _cancel_task(task: asyncio.Task) -> None:
    loop = task.get_loop()
    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None
    if running is loop:
        task.cancel()
    else:
        loop.call_soon_threadsafe(task.cancel)
