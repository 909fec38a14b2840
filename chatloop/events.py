"""Events delivered to the caller's sink while a turn is streaming."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, ClassVar, Union

logger = logging.getLogger("chatloop")

EventSink = Callable[[str], None]


@dataclass(frozen=True)
class TextDelta:
    """Cumulative assistant text for the turn so far."""

    type: ClassVar[str] = "message"

    role: str
    accumulated_content: str
    elapsed_ms: int


@dataclass(frozen=True)
class ToolCallReady:
    type: ClassVar[str] = "function_call"

    id: str
    function_name: str
    arguments_json: str
    elapsed_ms: int


@dataclass(frozen=True)
class TurnComplete:
    """A first turn finished with text; follow-ups use FollowupComplete."""

    type: ClassVar[str] = "complete"

    content: str


@dataclass(frozen=True)
class FollowupComplete:
    type: ClassVar[str] = "followup_complete"


@dataclass(frozen=True)
class TurnError:
    type: ClassVar[str] = "error"

    code: str
    message: str


ResponseEvent = Union[TextDelta, ToolCallReady, TurnComplete, FollowupComplete, TurnError]


def event_to_dict(event: ResponseEvent) -> dict[str, Any]:
    return {"type": event.type, **asdict(event)}


def event_to_json(event: ResponseEvent) -> str:
    return json.dumps(event_to_dict(event))


def deliver(sink: EventSink | None, event: ResponseEvent) -> bool:
    """Serialize *event* and hand it to *sink*.

    Returns False when there is no sink, the event could not be encoded or
    the sink raised. Failures are logged loudly and the event is
    dropped so the session keeps running.
    """
    if sink is None:
        logger.debug("No sink attached; dropping %s event", event.type)
        return False
    try:
        payload = event_to_json(event)
    except (TypeError, ValueError):
        logger.exception("Failed to serialize %s event", event.type)
        return False
    try:
        sink(payload)
    except Exception:
        logger.exception("Sink failed to accept %s event", event.type)
        return False
    return True
