"""
Websocket stream to the RTM gateway.

The connection is not resilient: once ``receive`` or ``send`` fails it is
terminated and nothing here reopens it.
"""

import asyncio
import contextlib
import json
import logging
from typing import Any, Optional

import websockets
from websockets.exceptions import WebSocketException

from rtmbot.errors import ProtocolError, StreamError, TransportError
from rtmbot.transport.envelope import build_reply_frame

logger = logging.getLogger(__name__)


class StreamConnection:
    def __init__(self, ws: Any):
        self._ws = ws
        self._closed = False

    @classmethod
    async def open(cls, url: str, open_timeout: float = 10.0) -> "StreamConnection":
        """Open the websocket returned by ``rtm.start``."""
        try:
            ws = await websockets.connect(
                url,
                open_timeout=open_timeout,
                ping_interval=30,
                ping_timeout=10,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise TransportError(f"Failed to open stream: {e}") from e
        logger.info("Stream connected")
        return cls(ws)

    @property
    def closed(self) -> bool:
        return self._closed

    async def receive(self) -> Any:
        """Block for the next frame and return its decoded JSON value.

        Raises StreamError when the connection fails and ProtocolError when a
        single frame is not valid JSON.
        """
        try:
            data = await self._ws.recv()
        except websockets.ConnectionClosed as e:
            self._closed = True
            raise StreamError(f"Stream closed: {e}") from e
        except (OSError, WebSocketException) as e:
            self._closed = True
            raise StreamError(f"Stream read failed: {e}") from e
        try:
            return json.loads(data)
        except ValueError as e:
            raise ProtocolError(f"Undecodable frame: {str(data)[:200]}") from e

    async def send(self, frame: dict[str, Any]) -> None:
        try:
            await self._ws.send(json.dumps(frame))
        except websockets.ConnectionClosed as e:
            self._closed = True
            raise StreamError(f"Stream closed while sending: {e}") from e
        except (OSError, WebSocketException) as e:
            self._closed = True
            raise StreamError(f"Stream write failed: {e}") from e

    async def close(self) -> None:
        self._closed = True
        with contextlib.suppress(Exception):
            await self._ws.close()


class ReplyWriter:
    """Single owner of the outbound id counter and the stream's send half.

    Dispatch tasks call ``submit``; frames go out one at a time in submission
    order, so ids are unique and frames never interleave on the wire.
    """

    def __init__(self, conn: StreamConnection):
        self._conn = conn
        self._queue: asyncio.Queue[tuple[str, str, asyncio.Future[int]]] = asyncio.Queue()
        self._count = 0
        self._failure: Optional[StreamError] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._inflight: Optional[asyncio.Future[int]] = None

    @property
    def last_id(self) -> int:
        return self._count

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="rtmbot-reply-writer")

    async def submit(self, channel: str, text: str) -> int:
        """Queue a reply and wait until it is written. Returns the frame id."""
        if self._failure is not None:
            raise StreamError(f"Reply writer is down: {self._failure}")
        fut: asyncio.Future[int] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((channel, text, fut))
        return await fut

    async def _run(self) -> None:
        while True:
            channel, text, fut = await self._queue.get()
            if fut.done():
                continue
            self._count += 1
            self._inflight = fut
            try:
                await self._conn.send(build_reply_frame(self._count, channel, text))
            except StreamError as e:
                self._failure = e
                if not fut.done():
                    fut.set_exception(e)
                self._fail_pending()
                return
            self._inflight = None
            # The submitter may have been cancelled while the frame was in flight.
            if not fut.done():
                fut.set_result(self._count)

    def _fail_pending(self) -> None:
        pending = [fut for _, _, fut in self._drain()]
        if self._inflight is not None:
            pending.append(self._inflight)
            self._inflight = None
        for fut in pending:
            if not fut.done():
                fut.set_exception(StreamError("Reply writer stopped before the frame was sent"))

    def _drain(self) -> list[tuple[str, str, "asyncio.Future[int]"]]:
        items = []
        while not self._queue.empty():
            items.append(self._queue.get_nowait())
        return items

    async def stop(self) -> None:
        if self._failure is None:
            self._failure = StreamError("Reply writer stopped")
        try:
            if self._task is not None:
                self._task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._task
        finally:
            self._task = None
            self._fail_pending()
