"""Anthropic provider contract."""

from __future__ import annotations

from .base import ProviderContract


class AnthropicProviderContract(ProviderContract):
    """Anthropic streams ``stop_reason`` instead of ``finish_reason``."""

    finish_key = "stop_reason"
    finish_aliases = {
        "end_turn": "stop",
        "stop_sequence": "stop",
        "tool_use": "tool_calls",
        "max_tokens": "length",
    }
