"""
Event engine — ingestion, routing and supervised dispatch.

Tasks:
- ingestor: reads the stream and hands typed frames to the router, one at a time
- router: the only consumer of the intake queue; spawns a dispatch task per message
- reply writer: serializes every outbound frame
- dispatch tasks: one per qualifying message, tracked until they finish
"""

import asyncio
import contextlib
import logging
from typing import Any, Optional, Sequence

from rtmbot.dispatch import CommandDispatcher
from rtmbot.errors import ProtocolError, StreamError
from rtmbot.handlers import HandlerBinding, MatchPolicy
from rtmbot.models.envelope import HelloEvent, IgnoredEvent, MessageEvent
from rtmbot.models.session import BotIdentity
from rtmbot.transport.envelope import parse_event
from rtmbot.transport.websocket import ReplyWriter, StreamConnection

logger = logging.getLogger(__name__)

# Put on the intake queue by the ingestor when event flow ends.
END_OF_STREAM: Any = object()


class EventIngestor:
    def __init__(self, conn: StreamConnection, intake: "asyncio.Queue[Any]"):
        self._conn = conn
        self._intake = intake

    async def run(self) -> StreamError:
        """Forward frames until the stream fails. Returns the failure, never retries."""
        while True:
            try:
                raw = await self._conn.receive()
            except ProtocolError as e:
                logger.warning("Skipping frame: %s", e)
                continue
            except StreamError as e:
                logger.error("Event stream terminated: %s", e)
                await self._intake.put(END_OF_STREAM)
                return e
            if not isinstance(raw, dict) or "type" not in raw:
                logger.debug("Dropping untyped frame: %r", raw)
                continue
            await self._intake.put(raw)


class EventRouter:
    def __init__(self, intake: "asyncio.Queue[Any]", dispatcher: CommandDispatcher):
        self._intake = intake
        self._dispatcher = dispatcher
        self._tasks: set[asyncio.Task[Optional[int]]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def run(self) -> None:
        """Route envelopes until the ingestor closes event flow."""
        while True:
            raw = await self._intake.get()
            if raw is END_OF_STREAM:
                return
            self.route(raw)

    def route(self, raw: dict[str, Any]) -> Optional["asyncio.Task[Optional[int]]"]:
        event = parse_event(raw)
        if event is None:
            # Subtyped messages (bot posts, edits, joins) routinely lack a user.
            if raw.get("subtype"):
                logger.debug("Skipping %r message", raw.get("subtype"))
            else:
                logger.warning("Skipping malformed %r event", raw.get("type"))
            return None
        if isinstance(event, HelloEvent):
            logger.info("Hello")
        elif isinstance(event, MessageEvent):
            logger.info("%s@%s: %s", event.user, event.channel, event.text)
            return self._spawn(event)
        elif isinstance(event, IgnoredEvent):
            pass
        else:
            logger.info("Unknown: %s", event.raw)
        return None

    def _spawn(self, msg: MessageEvent) -> "asyncio.Task[Optional[int]]":
        task = asyncio.create_task(self._dispatcher.dispatch(msg), name=f"rtmbot-dispatch-{msg.ts}")
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: "asyncio.Task[Optional[int]]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        if isinstance(exc, StreamError):
            logger.error("Reply not sent: %s", exc)
        else:
            logger.error("Handler failed in %s", task.get_name(), exc_info=exc)

    async def join(self) -> None:
        """Wait for every dispatch task spawned so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


class Engine:
    def __init__(
        self,
        conn: StreamConnection,
        identity: BotIdentity,
        bindings: Sequence[HandlerBinding],
        policy: MatchPolicy = MatchPolicy.LAST,
    ):
        intake: asyncio.Queue[Any] = asyncio.Queue(maxsize=1)
        self.writer = ReplyWriter(conn)
        self.dispatcher = CommandDispatcher(identity, bindings, self.writer, policy)
        self.ingestor = EventIngestor(conn, intake)
        self.router = EventRouter(intake, self.dispatcher)

    async def run(self) -> None:
        """Run until the stream terminates, then raise its StreamError."""
        self.writer.start()
        ingest = asyncio.create_task(self.ingestor.run(), name="rtmbot-ingestor")
        try:
            await self.router.run()
            error = await ingest
        finally:
            if not ingest.done():
                ingest.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await ingest
            await self.router.shutdown()
            await self.writer.stop()
        raise error
