"""Tests for the providers module."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from chatloop.errors import ConfigurationError
from chatloop.providers import SUPPORTED_PROVIDERS, create_chat_model


class TestCreateChatModel:
    def test_unsupported_provider_raises(self):
        with pytest.raises(ConfigurationError, match="Unsupported provider"):
            create_chat_model("nonexistent", "model", "key")

    @patch("chatloop.providers.init_chat_model")
    def test_openai_provider(self, mock_init):
        create_chat_model("  OpenAI ", "gpt-4o", "sk-test")
        mock_init.assert_called_once_with(
            model="gpt-4o",
            model_provider="openai",
            api_key="sk-test",
            streaming=True,
            temperature=0.7,
        )

    @patch("chatloop.providers.init_chat_model")
    def test_google_maps_provider_and_ignores_endpoint(self, mock_init):
        create_chat_model("google", "gemini-pro", "k", endpoint_url="https://x")
        kwargs = mock_init.call_args.kwargs
        assert kwargs["model_provider"] == "google_genai"
        assert "base_url" not in kwargs

    @patch("chatloop.providers.init_chat_model")
    def test_custom_endpoint_url(self, mock_init):
        create_chat_model("openai", "gpt-4o", "k", endpoint_url="https://custom.api.com/v1")
        assert mock_init.call_args.kwargs["base_url"] == "https://custom.api.com/v1"

    @patch("chatloop.providers.init_chat_model")
    def test_mistral_endpoint_kwarg(self, mock_init):
        create_chat_model("mistral", "mistral-large", "k", endpoint_url="https://m")
        assert mock_init.call_args.kwargs["endpoint"] == "https://m"

    @patch("chatloop.providers.init_chat_model")
    def test_tools_are_bound(self, mock_init):
        llm = MagicMock()
        mock_init.return_value = llm
        tools = [{"type": "function", "function": {"name": "shell"}}]

        result = create_chat_model("openai", "gpt-4o", "k", tools=tools)

        llm.bind_tools.assert_called_once_with(tools)
        assert result is llm.bind_tools.return_value

    @patch("chatloop.providers.init_chat_model")
    def test_no_tools_returns_model(self, mock_init):
        assert create_chat_model("anthropic", "claude", "k") is mock_init.return_value

    def test_supported_providers(self):
        assert SUPPORTED_PROVIDERS == ("openai", "anthropic", "google", "mistral")
