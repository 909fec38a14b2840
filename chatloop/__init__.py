"""Streamed turn assembly and history reconciliation for tool-calling chat sessions."""

from __future__ import annotations

from .assembler import AssembledTurn, TurnAssembler, TurnMode
from .config import SessionConfig
from .entries import Entry, ToolCallRequest
from .errors import (
    ChatloopError,
    ConfigurationError,
    FollowupLimitError,
    IncompleteStreamError,
    ProtocolError,
    StreamTransportError,
)
from .events import (
    FollowupComplete,
    TextDelta,
    ToolCallReady,
    TurnComplete,
    TurnError,
)
from .history import MessageLog
from .pending import PendingCallTracker
from .projection import project_history, to_langchain_messages
from .session import SessionOrchestrator, SessionState, TurnResult, TurnStatus

__all__ = [
    "AssembledTurn",
    "ChatloopError",
    "ConfigurationError",
    "Entry",
    "FollowupComplete",
    "FollowupLimitError",
    "IncompleteStreamError",
    "MessageLog",
    "PendingCallTracker",
    "ProtocolError",
    "SessionConfig",
    "SessionOrchestrator",
    "SessionState",
    "StreamTransportError",
    "TextDelta",
    "ToolCallReady",
    "ToolCallRequest",
    "TurnAssembler",
    "TurnComplete",
    "TurnError",
    "TurnMode",
    "TurnResult",
    "TurnStatus",
    "project_history",
    "to_langchain_messages",
]
