"""StreamConnection, ReplyWriter and envelope decoding."""

import asyncio
import json

import pytest
import websockets

from fakes import FakeStream, wait_until
from rtmbot.errors import ProtocolError, StreamError
from rtmbot.models.envelope import HelloEvent, IgnoredEvent, MessageEvent, UnknownEvent
from rtmbot.transport.envelope import build_reply_frame, parse_event
from rtmbot.transport.websocket import ReplyWriter, StreamConnection


class FakeWebSocket:
    def __init__(self, frames=(), recv_error=None, send_error=None):
        self.frames = list(frames)
        self.recv_error = recv_error
        self.send_error = send_error
        self.sent = []
        self.close_calls = 0

    async def recv(self):
        if self.frames:
            return self.frames.pop(0)
        raise self.recv_error

    async def send(self, data):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(data)

    async def close(self):
        self.close_calls += 1


def closed_error():
    return websockets.ConnectionClosed(None, None)


class GatedStream(FakeStream):
    """Holds every send until the gate opens."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()
        self.sending = False

    async def send(self, frame):
        self.sending = True
        await self.gate.wait()
        self.sent.append(frame)


class TestStreamConnection:
    @pytest.mark.asyncio
    async def test_receive_decodes_json(self):
        conn = StreamConnection(FakeWebSocket(frames=['{"type": "hello"}']))
        assert await conn.receive() == {"type": "hello"}

    @pytest.mark.asyncio
    async def test_bad_frame_is_protocol_error_and_stream_survives(self):
        conn = StreamConnection(FakeWebSocket(frames=["{not json", '{"type": "hello"}']))
        with pytest.raises(ProtocolError):
            await conn.receive()
        assert not conn.closed
        assert await conn.receive() == {"type": "hello"}

    @pytest.mark.asyncio
    async def test_closed_socket_is_stream_error(self):
        conn = StreamConnection(FakeWebSocket(recv_error=closed_error()))
        with pytest.raises(StreamError):
            await conn.receive()
        assert conn.closed

    @pytest.mark.asyncio
    async def test_send_encodes_json(self):
        ws = FakeWebSocket()
        conn = StreamConnection(ws)
        await conn.send({"id": 1, "type": "message", "channel": "C1", "text": "hi"})
        assert json.loads(ws.sent[0]) == {"id": 1, "type": "message", "channel": "C1", "text": "hi"}

    @pytest.mark.asyncio
    async def test_send_failure_is_stream_error(self):
        conn = StreamConnection(FakeWebSocket(send_error=OSError("broken pipe")))
        with pytest.raises(StreamError):
            await conn.send({"id": 1})
        assert conn.closed


class TestReplyWriter:
    @pytest.mark.asyncio
    async def test_ids_are_sequential_and_unique(self):
        stream = FakeStream()
        writer = ReplyWriter(stream)
        writer.start()
        try:
            ids = await asyncio.gather(*(writer.submit(f"C{i}", str(i)) for i in range(10)))
        finally:
            await writer.stop()
        assert sorted(ids) == list(range(1, 11))
        assert [f["id"] for f in stream.sent] == list(range(1, 11))
        for frame in stream.sent:
            assert frame["type"] == "message"
            assert frame["channel"] == f"C{frame['text']}"
        assert writer.last_id == 10

    @pytest.mark.asyncio
    async def test_failure_is_reported_and_writer_stays_down(self):
        stream = FakeStream()
        stream.fail_send = True
        writer = ReplyWriter(stream)
        writer.start()
        try:
            with pytest.raises(StreamError):
                await writer.submit("C1", "hi")
            stream.fail_send = False
            with pytest.raises(StreamError, match="down"):
                await writer.submit("C1", "again")
        finally:
            await writer.stop()
        assert stream.sent == []

    @pytest.mark.asyncio
    async def test_submitter_cancelled_mid_send_keeps_writer_alive(self):
        stream = GatedStream()
        writer = ReplyWriter(stream)
        writer.start()
        try:
            first = asyncio.create_task(writer.submit("C1", "first"))
            await wait_until(lambda: stream.sending)
            first.cancel()
            second = asyncio.create_task(writer.submit("C2", "second"))
            await asyncio.sleep(0)
            stream.gate.set()

            assert await asyncio.wait_for(second, timeout=1.0) == 2
            with pytest.raises(asyncio.CancelledError):
                await first
        finally:
            await writer.stop()
        assert [f["id"] for f in stream.sent] == [1, 2]

    @pytest.mark.asyncio
    async def test_stop_fails_queued_submissions(self):
        stream = GatedStream()
        writer = ReplyWriter(stream)
        writer.start()
        first = asyncio.create_task(writer.submit("C1", "first"))
        await wait_until(lambda: stream.sending)
        queued = asyncio.create_task(writer.submit("C2", "queued"))
        await asyncio.sleep(0)
        await writer.stop()
        with pytest.raises(StreamError):
            await asyncio.wait_for(first, timeout=1.0)
        with pytest.raises(StreamError):
            await asyncio.wait_for(queued, timeout=1.0)

    @pytest.mark.asyncio
    async def test_submit_after_stop_fails(self):
        writer = ReplyWriter(FakeStream())
        writer.start()
        await writer.stop()
        with pytest.raises(StreamError):
            await writer.submit("C1", "late")


class TestEnvelope:
    def test_hello(self):
        assert isinstance(parse_event({"type": "hello"}), HelloEvent)

    def test_message(self):
        event = parse_event({"type": "message", "channel": "C1", "user": "U1", "ts": "1.0", "text": "hi", "team": "T1"})
        assert isinstance(event, MessageEvent)
        assert (event.channel, event.user, event.ts, event.text) == ("C1", "U1", "1.0", "hi")

    @pytest.mark.parametrize("raw", [
        {"type": "message", "subtype": "bot_message", "channel": "C1", "ts": "1.0", "text": "hi"},
        {"type": "message", "subtype": "message_changed", "channel": "C1", "ts": "1.0", "message": {}},
        {"type": "message", "channel": "C1", "user": "U1", "ts": 1.0, "text": "hi"},
        {"type": "message", "channel": None, "user": "U1", "ts": "1.0", "text": "hi"},
    ])
    def test_malformed_message_is_none(self, raw):
        assert parse_event(raw) is None

    def test_ignored_types(self):
        for tag in ("user_typing", "channel_joined", "channel_left", "presence_change", "reconnect_url"):
            event = parse_event({"type": tag, "url": "wss://x"})
            assert isinstance(event, IgnoredEvent)
            assert event.type == tag

    def test_unknown_type_keeps_raw(self):
        raw = {"type": "team_migration_started"}
        event = parse_event(raw)
        assert isinstance(event, UnknownEvent)
        assert event.raw == raw

    def test_non_string_type_is_none(self):
        assert parse_event({"type": 7}) is None

    def test_reply_frame(self):
        assert build_reply_frame(3, "C1", "pong") == {"id": 3, "type": "message", "channel": "C1", "text": "pong"}
