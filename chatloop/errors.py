"""Exception taxonomy for session, stream and protocol failures."""

from __future__ import annotations


class ChatloopError(Exception):
    """Base class for all chatloop errors."""

    code = "agent_error"


class ConfigurationError(ChatloopError, ValueError):
    """Raised at session construction when the config cannot be used."""

    code = "configuration_error"


class StreamTransportError(ChatloopError):
    """The upstream stream failed while opening or receiving."""

    code = "stream_error"


class ProtocolError(ChatloopError):
    """The stream violated the turn protocol in a way the data cannot survive."""

    code = "protocol_error"


class IncompleteStreamError(ProtocolError):
    """The stream ended without a finish marker."""


class FollowupLimitError(ChatloopError):
    """Too many consecutive follow-up turns without a text answer."""

    code = "followup_limit"
