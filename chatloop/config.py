"""Session configuration built from the backend init message and environment."""

from __future__ import annotations

import logging
import os
from typing import Any

from .errors import ConfigurationError

logger = logging.getLogger("chatloop")

DEFAULT_PROVIDER = "openai"
DEFAULT_MODEL = "gpt-4o"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_FOLLOWUP_DEPTH = 25

_API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "google": "GOOGLE_API_KEY",
}


def _load_int_env(name: str, default: int) -> int:
    """Read an integer from the environment, falling back on invalid values."""
    raw = (os.getenv(name, str(default)) or str(default)).strip()
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, defaulting to %d", name, raw, default)
        return default


def _as_int(data: dict[str, Any], key: str, default: int) -> int:
    raw = data.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from exc


class SessionConfig:
    """Configuration for one orchestrated session.

    0 or negative ``max_followup_depth`` means follow-up turns are unbounded.
    """

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        data = dict(data or {})
        self.provider: str = (data.get("provider") or DEFAULT_PROVIDER).strip().lower()
        self.model: str = data.get("model") or DEFAULT_MODEL
        env_key = _API_KEY_ENV.get(self.provider, "")
        self.api_key: str = data.get("api_key") or (os.getenv(env_key, "") if env_key else "")
        self.endpoint_url: str | None = data.get("endpoint_url") or None
        self.system_prompt: str | None = data.get("system_prompt") or None
        self.history_path: str | None = data.get("history_path") or None
        self.tools: list[str] | None = data.get("tools")
        try:
            self.temperature: float = float(data.get("temperature", DEFAULT_TEMPERATURE))
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"temperature must be a number, got {data.get('temperature')!r}"
            ) from exc
        self.context_window_entries: int = _as_int(data, "context_window_entries", 0)
        self.max_followup_depth: int = _as_int(
            data,
            "max_followup_depth",
            _load_int_env("MAX_FOLLOWUP_DEPTH", DEFAULT_MAX_FOLLOWUP_DEPTH),
        )

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` if the session cannot start."""
        if not self.api_key:
            raise ConfigurationError(f"API key is required for provider {self.provider!r}")
        if not self.model:
            raise ConfigurationError("model is required")
