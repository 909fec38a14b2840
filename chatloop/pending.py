"""Tool calls handed to the caller that have no committed result yet."""

from __future__ import annotations

import logging
import threading

logger = logging.getLogger("chatloop")


class PendingCallTracker:
    """Thread-safe set of issued-but-unresolved tool call ids."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids: dict[str, bool] = {}

    def register(self, call_id: str) -> None:
        with self._lock:
            self._ids[call_id] = True
        logger.debug("Registered pending tool call %s", call_id)

    def resolve(self, call_id: str) -> bool:
        """Remove *call_id*; returns False when it was not pending."""
        with self._lock:
            found = self._ids.pop(call_id, None) is not None
        if not found:
            logger.warning("Tool call %s was not pending when resolved", call_id)
        return found

    def drain_all(self) -> list[str]:
        """Atomically empty the tracker and return what it held, oldest first."""
        with self._lock:
            drained = list(self._ids)
            self._ids = {}
        return drained

    def snapshot(self) -> list[str]:
        """Pending ids in registration order."""
        with self._lock:
            return list(self._ids)

    def __contains__(self, call_id: object) -> bool:
        with self._lock:
            return call_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)
