"""Google provider contract."""

from __future__ import annotations

from .base import FINISH_STOP, FINISH_TOOL_CALLS, ProviderContract


class GoogleProviderContract(ProviderContract):
    """Gemini closes function-call turns with ``STOP`` rather than a tool-call reason."""

    def resolve_finish(self, marker: str, *, tool_calls: bool) -> str:
        if tool_calls and marker == FINISH_STOP:
            return FINISH_TOOL_CALLS
        return marker
