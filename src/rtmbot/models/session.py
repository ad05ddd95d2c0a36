"""
Session models — the ``rtm.start`` response and what the client keeps of it.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr


class BotIdentity(BaseModel):
    id: StrictStr
    name: StrictStr


class RtmStartResponse(BaseModel):
    """Shape of a successful ``rtm.start`` answer. Extra fields are ignored."""

    model_config = ConfigDict(populate_by_name=True)

    ok: StrictBool
    url: StrictStr
    self_: BotIdentity = Field(alias="self")


class Session(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    identity: BotIdentity
    token: Optional[str] = Field(default=None, exclude=True, repr=False)
