"""
RtmBot / AsyncRtmBot — the embedder-facing clients.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from rtmbot.auth import Bootstrapper, check_token
from rtmbot.engine import Engine
from rtmbot.errors import ConfigError, StreamError
from rtmbot.handlers import HandlerBinding, HandlerFunc, HandlerRegistry, MatchPolicy
from rtmbot.models.session import BotIdentity, Session
from rtmbot.transport.http import DEFAULT_API_URL, HttpClient
from rtmbot.transport.websocket import StreamConnection

logger = logging.getLogger(__name__)


class AsyncRtmBot:
    """Async bot client (primary)."""

    def __init__(
        self,
        token: str,
        *,
        api_url: str = DEFAULT_API_URL,
        match_policy: MatchPolicy = MatchPolicy.LAST,
        http_timeout: float = 30.0,
        open_timeout: float = 10.0,
        http: Optional[HttpClient] = None,
    ):
        self._token = check_token(token)
        self._match_policy = MatchPolicy(match_policy)
        self._open_timeout = open_timeout

        self.http = http or HttpClient(api_url=api_url, timeout=http_timeout)
        self.bootstrapper = Bootstrapper(self.http)
        self.handlers = HandlerRegistry()

        self._session: Optional[Session] = None
        self._conn: Optional[StreamConnection] = None
        self._engine: Optional[Engine] = None
        self._run_task: Optional[asyncio.Task[None]] = None
        self._stopping = False

    @property
    def identity(self) -> Optional[BotIdentity]:
        return self._session.identity if self._session else None

    @property
    def connected(self) -> bool:
        return self._conn is not None and not self._conn.closed

    @property
    def engine(self) -> Optional[Engine]:
        return self._engine

    def add_handler(self, pattern: str, handler: HandlerFunc) -> HandlerBinding:
        """Register ``handler`` for messages matching the regex ``pattern``.

        The handler is called as ``handler(out, response)``; whatever it writes
        to ``out`` is sent back to the originating channel.
        """
        return self.handlers.register(pattern, handler)

    def handler(self, pattern: str) -> Callable[[HandlerFunc], HandlerFunc]:
        """Decorator form of ``add_handler``."""
        def decorator(func: HandlerFunc) -> HandlerFunc:
            self.add_handler(pattern, func)
            return func
        return decorator

    async def authenticate(self) -> Session:
        """Run the ``rtm.start`` handshake without opening the stream."""
        self._session = await self.bootstrapper.start(self._token)
        return self._session

    async def start(self) -> None:
        """Bootstrap, open the stream and run until it fails.

        Bootstrap and connection errors are raised as-is. Once running, this
        only returns by raising StreamError, when the stream terminates or
        ``stop`` is called.
        """
        if self._engine is not None:
            raise ConfigError("Bot already started")
        bindings = self.handlers.freeze()
        if not bindings:
            logger.warning("Starting with no handlers registered; no message will be answered")

        session = await self.authenticate()
        self._conn = await StreamConnection.open(session.url, open_timeout=self._open_timeout)
        self._engine = Engine(self._conn, session.identity, bindings, self._match_policy)
        self._run_task = asyncio.create_task(self._engine.run(), name="rtmbot-engine")
        try:
            await self._run_task
        except asyncio.CancelledError:
            if not self._stopping:
                raise
            raise StreamError("Bot stopped")
        finally:
            self._run_task = None
            await self._conn.close()

    async def stop(self) -> None:
        """Cancel a running engine, then close the stream and the HTTP client."""
        self._stopping = True
        if self._run_task is not None and not self._run_task.done():
            self._run_task.cancel()
            await asyncio.gather(self._run_task, return_exceptions=True)
        if self._conn is not None:
            await self._conn.close()
        await self.http.close()


class RtmBot:
    """Sync wrapper around AsyncRtmBot. Runs the event loop internally."""

    def __init__(self, token: str, **kwargs: Any):
        self._async = AsyncRtmBot(token, **kwargs)
        self._loop = asyncio.new_event_loop()

    def _run(self, coro: Any) -> Any:
        return self._loop.run_until_complete(coro)

    @property
    def identity(self) -> Optional[BotIdentity]:
        return self._async.identity

    @property
    def connected(self) -> bool:
        return self._async.connected

    @property
    def handlers(self) -> HandlerRegistry:
        return self._async.handlers

    def add_handler(self, pattern: str, handler: HandlerFunc) -> HandlerBinding:
        return self._async.add_handler(pattern, handler)

    def handler(self, pattern: str) -> Callable[[HandlerFunc], HandlerFunc]:
        return self._async.handler(pattern)

    def authenticate(self) -> Session:
        return self._run(self._async.authenticate())

    def start(self) -> None:
        """Block until the stream terminates. Always ends by raising."""
        try:
            self._run(self._async.start())
        finally:
            self._run(self._async.stop())

    def close(self) -> None:
        self._run(self._async.stop())
        self._loop.close()
