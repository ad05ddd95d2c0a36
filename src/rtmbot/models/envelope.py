"""
Inbound event envelopes and the outbound reply frame.

Each inbound frame decodes into exactly one of the variants below; the
``Event`` union is what the router switches on.
"""

from typing import Any, Literal, Union

from pydantic import BaseModel, Field, StrictStr


class HelloEvent(BaseModel):
    type: Literal["hello"] = "hello"


class MessageEvent(BaseModel):
    type: Literal["message"] = "message"
    channel: StrictStr
    user: StrictStr
    ts: StrictStr
    text: StrictStr


class IgnoredEvent(BaseModel):
    """A recognized event type the bot attaches no behaviour to."""

    type: str


class UnknownEvent(BaseModel):
    type: str
    raw: dict[str, Any] = Field(default_factory=dict)


Event = Union[HelloEvent, MessageEvent, IgnoredEvent, UnknownEvent]


class ReplyFrame(BaseModel):
    id: int
    type: Literal["message"] = "message"
    channel: str
    text: str
