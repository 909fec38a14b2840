"""Multi-provider LLM factory for LangChain."""

from __future__ import annotations

from typing import Any, Sequence

from langchain.chat_models import init_chat_model
from langchain_core.language_models.chat_models import BaseChatModel

from .errors import ConfigurationError

SUPPORTED_PROVIDERS = ("openai", "anthropic", "google", "mistral")

# Map our provider names to init_chat_model's model_provider values.
_PROVIDER_MAP = {
    "openai": "openai",
    "anthropic": "anthropic",
    "google": "google_genai",
    "mistral": "mistralai",
}


def create_chat_model(
    provider: str,
    model: str,
    api_key: str,
    *,
    endpoint_url: str | None = None,
    temperature: float = 0.7,
    tools: Sequence[dict[str, Any]] = (),
    **kwargs: Any,
) -> BaseChatModel:
    """Create a streaming LangChain chat model, bound to *tools* when given.

    Raises:
        ConfigurationError: If the provider is not supported.
    """
    provider = provider.lower().strip()
    if provider not in SUPPORTED_PROVIDERS:
        raise ConfigurationError(
            f"Unsupported provider: {provider!r}. "
            f"Supported: {', '.join(SUPPORTED_PROVIDERS)}"
        )

    params: dict[str, Any] = {
        "api_key": api_key,
        "streaming": True,
        "temperature": temperature,
        **kwargs,
    }
    if endpoint_url:
        if provider == "mistral":
            params["endpoint"] = endpoint_url
        elif provider != "google":
            params["base_url"] = endpoint_url

    llm = init_chat_model(
        model=model,
        model_provider=_PROVIDER_MAP[provider],
        **params,
    )
    if tools:
        return llm.bind_tools(list(tools))
    return llm
