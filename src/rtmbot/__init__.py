"""
rtmbot — command bot client for Slack's real-time messaging API.

Authenticates with ``rtm.start``, holds the websocket stream open and
answers messages addressed to the bot with registered regex handlers.
"""

from rtmbot.client import RtmBot, AsyncRtmBot
from rtmbot.handlers import HandlerRegistry, MatchPolicy, Response
from rtmbot.errors import (
    RtmBotError,
    ConfigError,
    AuthError,
    TransportError,
    ProtocolError,
    RejectedError,
    StreamError,
)
from rtmbot.models.events import EventType

__version__ = "0.1.0"
__all__ = [
    "RtmBot",
    "AsyncRtmBot",
    "HandlerRegistry",
    "MatchPolicy",
    "Response",
    "RtmBotError",
    "ConfigError",
    "AuthError",
    "TransportError",
    "ProtocolError",
    "RejectedError",
    "StreamError",
    "EventType",
]
