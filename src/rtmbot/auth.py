"""
Session bootstrap — the ``rtm.start`` handshake.

One form-encoded POST returns the websocket URL and the bot's own identity;
both are needed before a stream can be opened.
"""

import logging
from typing import Any

from pydantic import ValidationError

from rtmbot.errors import AuthError, ProtocolError, RejectedError
from rtmbot.models.session import RtmStartResponse, Session
from rtmbot.transport.http import HttpClient

logger = logging.getLogger(__name__)

RTM_START = "rtm.start"


def check_token(token: str) -> str:
    if not token:
        raise AuthError("Missing slack api token")
    return token


class Bootstrapper:
    def __init__(self, http: HttpClient):
        self._http = http

    async def start(self, token: str) -> Session:
        """Request a streaming session for ``token``."""
        check_token(token)
        data = await self._http.post_form(
            RTM_START,
            {"token": token, "simple_latest": "", "no_unreads": ""},
        )
        return self._parse(data, token)

    @staticmethod
    def _parse(data: Any, token: str) -> Session:
        if not isinstance(data, dict):
            raise ProtocolError(f"{RTM_START} returned {type(data).__name__}, expected an object")
        if data.get("ok") is False:
            reason = data.get("error")
            raise RejectedError(reason if isinstance(reason, str) else "unknown_error")
        try:
            resp = RtmStartResponse.model_validate(data)
        except ValidationError as e:
            raise ProtocolError(
                f"Unexpected {RTM_START} response: {e.error_count()} invalid field(s)",
                details={"errors": e.errors(include_url=False)},
            ) from e
        logger.info("Authenticated as %s (%s)", resp.self_.name, resp.self_.id)
        return Session(url=resp.url, identity=resp.self_, token=token)
