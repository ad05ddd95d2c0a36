"""
Command dispatch — one run per inbound ``message`` event.

Addressing check, highlight stripping, pattern selection, capture
extraction, handler invocation and the reply, in that order.
"""

import asyncio
import inspect
import io
import logging
from typing import Optional, Sequence

from rtmbot.handlers import HandlerBinding, HandlerFunc, MatchPolicy, Response, extract_captures, select_binding
from rtmbot.models.envelope import MessageEvent
from rtmbot.models.session import BotIdentity
from rtmbot.transport.websocket import ReplyWriter

logger = logging.getLogger(__name__)

# Direct-message channel ids start with "D".
DIRECT_CHANNEL_PREFIX = "D"


def is_direct_channel(channel: str) -> bool:
    return channel.startswith(DIRECT_CHANNEL_PREFIX)


async def invoke_handler(callback: HandlerFunc, sink: io.StringIO, response: Response) -> None:
    """Run a handler to completion. Plain functions run in a worker thread."""
    if inspect.iscoroutinefunction(callback):
        await callback(sink, response)
        return
    result = await asyncio.to_thread(callback, sink, response)
    if inspect.isawaitable(result):
        await result


class CommandDispatcher:
    def __init__(
        self,
        identity: BotIdentity,
        bindings: Sequence[HandlerBinding],
        writer: ReplyWriter,
        policy: MatchPolicy = MatchPolicy.LAST,
    ):
        self._identity = identity
        self._bindings = tuple(bindings)
        self._writer = writer
        self._policy = policy

    @property
    def mention(self) -> str:
        return f"<@{self._identity.id}>"

    def is_addressed(self, msg: MessageEvent) -> bool:
        """True if the message is for the bot and not from it."""
        if msg.user == self._identity.id:
            return False
        name = self._identity.name
        return (
            msg.text.startswith(self.mention)
            or (bool(name) and msg.text.startswith(name))
            or is_direct_channel(msg.channel)
        )

    def strip_highlight(self, text: str) -> str:
        """Drop a leading mention (``<@id>`` or the display name) and a ``:`` after it."""
        name = self._identity.name
        if text.startswith(self.mention):
            text = text[len(self.mention):]
        elif name and text.startswith(name):
            text = text[len(name):]
        text = text.lstrip()
        if text.startswith(":"):
            text = text[1:].lstrip()
        return text

    async def dispatch(self, msg: MessageEvent) -> Optional[int]:
        """Answer one message. Returns the reply's frame id, or None if nothing was sent."""
        if not self.is_addressed(msg):
            return None

        text = self.strip_highlight(msg.text)
        binding = select_binding(self._bindings, text, self._policy)
        if binding is None:
            logger.debug("No handler matches %r", text)
            return None

        response = Response(
            user=msg.user,
            time=msg.ts,
            channel=msg.channel,
            data=extract_captures(binding, text),
        )
        sink = io.StringIO()
        await invoke_handler(binding.callback, sink, response)
        return await self._writer.submit(msg.channel, sink.getvalue())
