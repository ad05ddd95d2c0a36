"""
rtmbot error types.

Every failure the client surfaces is an ``RtmBotError`` carrying a short
machine-readable ``code`` next to the human message.
"""

from typing import Any, Optional


class RtmBotError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class ConfigError(RtmBotError):
    def __init__(self, message: str, code: str = "config_error"):
        super().__init__(code, message)


class AuthError(ConfigError):
    """Missing or empty API token. Raised before any network activity."""

    def __init__(self, message: str, code: str = "auth_error"):
        super().__init__(message, code)


class TransportError(RtmBotError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("transport_error", message, details)


class ProtocolError(RtmBotError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("protocol_error", message, details)


class RejectedError(RtmBotError):
    """The gateway answered ``ok: false``; ``reason`` is its ``error`` field."""

    def __init__(self, reason: str):
        super().__init__("rejected", f"Gateway rejected the session: {reason}", {"reason": reason})
        self.reason = reason


class StreamError(RtmBotError):
    def __init__(self, message: str):
        super().__init__("stream_error", message)
