"""OpenAI provider contract."""

from __future__ import annotations

from .base import ProviderContract


class OpenAIProviderContract(ProviderContract):
    """OpenAI reports the legacy ``function_call`` reason for single calls."""

    finish_aliases = {"function_call": "tool_calls"}
