"""Ordered, append-only conversation log with windowing and persistence."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Iterable, Iterator

from pydantic import TypeAdapter

from .entries import Entry

logger = logging.getLogger("chatloop")

_ENTRY_LIST = TypeAdapter(list[Entry])


class MessageLog:
    """Conversation entries in commit order.

    Only the session mutates the log. Reads return copies so callers can
    iterate while a turn appends.
    """

    def __init__(self, system_prompt: str | None = None) -> None:
        self._lock = threading.Lock()
        self._entries: list[Entry] = []
        if system_prompt:
            self._entries.append(Entry.system(system_prompt))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.entries())

    def __getitem__(self, index: int) -> Entry:
        with self._lock:
            return self._entries[index]

    def entries(self) -> list[Entry]:
        with self._lock:
            return list(self._entries)

    def append(self, entry: Entry) -> None:
        with self._lock:
            self._entries.append(entry)

    def extend(self, entries: Iterable[Entry]) -> None:
        with self._lock:
            self._entries.extend(entries)

    def clear(self, *, keep_system: bool = True) -> None:
        """Drop every entry, optionally keeping the leading system prompt."""
        with self._lock:
            if keep_system and self._entries and self._entries[0].role == "system":
                self._entries = self._entries[:1]
            else:
                self._entries = []

    def truncate_turns(self, keep_turns: int) -> int:
        """Keep only the first *keep_turns* user exchanges.

        Entries are cut at the (keep_turns + 1)-th user entry so that the
        assistant and tool entries belonging to kept turns stay together.
        Returns the number of entries removed.
        """
        with self._lock:
            user_count = 0
            cut = len(self._entries)
            for i, entry in enumerate(self._entries):
                if entry.role == "user":
                    user_count += 1
                    if user_count > keep_turns:
                        cut = i
                        break
            removed = len(self._entries) - cut
            self._entries = self._entries[:cut]
            return removed

    def last_assistant_text(self) -> str | None:
        with self._lock:
            for entry in reversed(self._entries):
                if entry.role == "assistant" and not entry.tool_calls:
                    return entry.content
        return None

    def window(self, max_entries: int = 0) -> list[Entry]:
        """Return the entries to consider for the next request.

        ``max_entries <= 0`` returns everything. Otherwise the leading system
        entries are kept and the tail is shortened to at most *max_entries*,
        starting at a user entry so no tool-call group is split.
        """
        entries = self.entries()
        if max_entries <= 0 or len(entries) <= max_entries:
            return entries

        head: list[Entry] = []
        for entry in entries:
            if entry.role != "system":
                break
            head.append(entry)
        body = entries[len(head):]

        start = max(len(body) - max_entries, 0)
        while start < len(body) and body[start].role != "user":
            start += 1
        if start >= len(body):
            # No user boundary inside the window; keep the most recent turn whole.
            start = max(
                (i for i, e in enumerate(body) if e.role == "user"),
                default=0,
            )
        if start:
            logger.debug("Context window dropped %d entries", start)
        return head + body[start:]

    def save(self, path: str | Path) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(_ENTRY_LIST.dump_json(self.entries(), indent=2))
        logger.debug("Saved %d entries to %s", len(self), target)

    @classmethod
    def load(cls, path: str | Path) -> MessageLog:
        log = cls()
        log.extend(_ENTRY_LIST.validate_json(Path(path).read_bytes()))
        logger.debug("Loaded %d entries from %s", len(log), path)
        return log

    def replace(self, entries: Iterable[Entry]) -> None:
        with self._lock:
            self._entries = list(entries)
