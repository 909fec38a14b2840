"""Project the message log into the sequence that is legal to send upstream."""

from __future__ import annotations

import logging
from typing import Iterable

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from .entries import Entry

logger = logging.getLogger("chatloop")


def project_history(entries: Iterable[Entry]) -> list[Entry]:
    """Return the entries to send for the next request, in order.

    An assistant entry that issues tool calls must be followed by its tool
    results with nothing else in between. Assistant text entries that were
    committed while results were still outstanding (left behind by a
    cancelled or interleaved turn) are skipped. Tool-call entries are sent
    with empty content.
    """
    projected: list[Entry] = []
    expected_results: set[str] = set()

    for entry in entries:
        if entry.role == "assistant":
            if entry.issues_tool_calls:
                expected_results.update(call.id for call in entry.tool_calls)
                projected.append(entry.model_copy(update={"content": ""}))
                continue
            if expected_results:
                logger.debug(
                    "Skipping assistant text (%d chars) while %d tool results are pending",
                    len(entry.content),
                    len(expected_results),
                )
                continue
            projected.append(entry)
            continue

        if entry.role == "tool":
            if entry.tool_call_id in expected_results:
                expected_results.discard(entry.tool_call_id)
            else:
                logger.warning("Tool result for unexpected id %s", entry.tool_call_id)
            projected.append(entry)
            continue

        projected.append(entry)

    return projected


def entry_to_message(entry: Entry) -> BaseMessage:
    """Convert one projected entry into the LangChain message the model expects."""
    if entry.role == "system":
        return SystemMessage(content=entry.content)
    if entry.role == "user":
        return HumanMessage(content=entry.content)
    if entry.role == "tool":
        return ToolMessage(
            content=entry.content,
            tool_call_id=entry.tool_call_id or "",
            name=entry.name,
        )

    if not entry.tool_calls:
        return AIMessage(content=entry.content)

    tool_calls = []
    invalid_tool_calls = []
    for call in entry.tool_calls:
        args = call.parsed_arguments()
        if args is None:
            # Raw text is replayed as-is so the model sees what it produced.
            invalid_tool_calls.append({
                "type": "invalid_tool_call",
                "id": call.id,
                "name": call.function_name,
                "args": call.arguments_json,
                "error": None,
            })
            continue
        tool_calls.append({
            "type": "tool_call",
            "id": call.id,
            "name": call.function_name,
            "args": args,
        })
    return AIMessage(
        content="",
        tool_calls=tool_calls,
        invalid_tool_calls=invalid_tool_calls,
    )


def to_langchain_messages(entries: Iterable[Entry]) -> list[BaseMessage]:
    """Project *entries* and convert the result to LangChain messages."""
    return [entry_to_message(entry) for entry in project_history(entries)]
