"""Provider contract registry."""

from __future__ import annotations

from .anthropic import AnthropicProviderContract
from .base import FINISH_STOP, FINISH_TOOL_CALLS, ProviderContract
from .google import GoogleProviderContract
from .openai import OpenAIProviderContract


def get_provider_contract(provider: str) -> ProviderContract:
    key = (provider or "").strip().lower()
    if key == "openai":
        return OpenAIProviderContract(key)
    if key == "anthropic":
        return AnthropicProviderContract(key)
    if key == "google":
        return GoogleProviderContract(key)
    return ProviderContract(key)


__all__ = [
    "FINISH_STOP",
    "FINISH_TOOL_CALLS",
    "ProviderContract",
    "get_provider_contract",
]
