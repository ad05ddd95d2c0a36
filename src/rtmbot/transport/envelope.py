"""
Envelope parsing and reply-frame construction.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from rtmbot.models.envelope import Event, HelloEvent, IgnoredEvent, MessageEvent, ReplyFrame, UnknownEvent
from rtmbot.models.events import IGNORED_EVENTS, EventType

logger = logging.getLogger(__name__)


def parse_event(raw: dict[str, Any]) -> Optional[Event]:
    """Decode a raw inbound frame into its typed variant. Returns None if malformed.

    Only ``message`` frames carry fields the bot depends on, so they are the
    only variant that can fail validation.
    """
    event_type = raw.get("type")
    if not isinstance(event_type, str):
        return None
    if event_type == EventType.HELLO:
        return HelloEvent()
    if event_type == EventType.MESSAGE:
        try:
            return MessageEvent.model_validate(raw)
        except ValidationError as e:
            logger.debug("Malformed message frame: %s", e)
            return None
    if event_type in IGNORED_EVENTS:
        return IgnoredEvent(type=event_type)
    return UnknownEvent(type=event_type, raw=raw)


def build_reply_frame(message_id: int, channel: str, text: str) -> dict[str, Any]:
    """Build an outbound ``message`` frame as a dict ready for JSON encoding."""
    return ReplyFrame(id=message_id, channel=channel, text=text).model_dump()
