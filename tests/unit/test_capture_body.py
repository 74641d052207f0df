"""Tests for request/response body capture."""

import pytest

from trafficlog.capture.body import RequestBodyBuffer, ResponseSink


def make_receive(*messages):
    """ASGI receive that replays ``messages`` then reports a disconnect."""
    queue = list(messages)

    async def receive():
        if queue:
            return queue.pop(0)
        return {"type": "http.disconnect"}

    return receive


@pytest.mark.unit
class TestRequestBodyBuffer:
    """Tests for RequestBodyBuffer."""

    @pytest.mark.asyncio
    async def test_drain_joins_chunks(self):
        """Chunked request messages are joined into one buffer."""
        receive = make_receive(
            {"type": "http.request", "body": b'{"x":', "more_body": True},
            {"type": "http.request", "body": b"1}", "more_body": False},
        )
        buffer = await RequestBodyBuffer.drain(receive)

        assert buffer.data == b'{"x":1}'
        assert buffer.text == '{"x":1}'

    @pytest.mark.asyncio
    async def test_drain_empty_body(self):
        """A request without a body drains to an empty buffer."""
        buffer = await RequestBodyBuffer.drain(make_receive({"type": "http.request"}))
        assert buffer.data == b""
        assert buffer.text == ""

    @pytest.mark.asyncio
    async def test_drain_stops_on_disconnect(self):
        """An early disconnect stops draining and keeps what arrived."""
        receive = make_receive(
            {"type": "http.request", "body": b"part", "more_body": True},
            {"type": "http.disconnect"},
        )
        buffer = await RequestBodyBuffer.drain(receive)
        assert buffer.data == b"part"

    def test_text_replaces_invalid_utf8(self):
        """Undecodable bytes become replacement characters in text."""
        buffer = RequestBodyBuffer(b"ok\xff")
        assert buffer.text == "ok�"

    def test_read_advances_cursor_and_rewind_resets(self):
        """read() moves the cursor and rewind() moves it back to the start."""
        buffer = RequestBodyBuffer(b"abcdef")

        assert buffer.read(2) == b"ab"
        assert buffer.cursor == 2
        assert buffer.read() == b"cdef"
        assert buffer.read() == b""

        buffer.rewind()
        assert buffer.cursor == 0
        assert buffer.read(100) == b"abcdef"

    @pytest.mark.asyncio
    async def test_receive_serves_unconsumed_body(self):
        """The first receive() hands the whole body to the app."""
        receive = make_receive({"type": "http.request", "body": b"hello", "more_body": False})
        buffer = await RequestBodyBuffer.drain(receive)

        message = await buffer.receive()

        assert message == {"type": "http.request", "body": b"hello", "more_body": False}

    @pytest.mark.asyncio
    async def test_receive_falls_through_after_body(self):
        """Later receive() calls report the disconnect from the original channel."""
        receive = make_receive({"type": "http.request", "body": b"hello"})
        buffer = await RequestBodyBuffer.drain(receive)

        await buffer.receive()
        message = await buffer.receive()

        assert message == {"type": "http.disconnect"}

    @pytest.mark.asyncio
    async def test_receive_after_rewind_serves_body_again(self):
        """A rewound buffer serves its body a second time."""
        buffer = RequestBodyBuffer(b"again")
        await buffer.receive()
        buffer.rewind()

        message = await buffer.receive()

        assert message["body"] == b"again"

    @pytest.mark.asyncio
    async def test_release_drops_data(self):
        """release() frees the buffered body."""
        buffer = RequestBodyBuffer(b"data")
        buffer.release()
        assert buffer.data == b""


@pytest.mark.unit
class TestResponseSink:
    """Tests for ResponseSink."""

    @pytest.mark.asyncio
    async def test_status_is_none_until_started(self):
        """Status is unknown until the response start message arrives."""
        sink = ResponseSink()
        assert sink.status_code is None
        assert sink.started is False

        await sink.send({"type": "http.response.start", "status": 201, "headers": []})

        assert sink.status_code == 201
        assert sink.started is True

    @pytest.mark.asyncio
    async def test_body_concatenates_chunks(self):
        """Body chunks are joined in the order they were sent."""
        sink = ResponseSink()
        await sink.send({"type": "http.response.start", "status": 200, "headers": []})
        await sink.send({"type": "http.response.body", "body": b"ab", "more_body": True})
        await sink.send({"type": "http.response.body", "body": b"cd", "more_body": False})

        assert sink.body == b"abcd"
        assert sink.text == "abcd"

    @pytest.mark.asyncio
    async def test_replay_sends_messages_unchanged_in_order(self):
        """replay() sends the captured messages verbatim and in order."""
        sink = ResponseSink()
        messages = [
            {"type": "http.response.start", "status": 200, "headers": [(b"content-type", b"application/octet-stream")]},
            {"type": "http.response.body", "body": b"\x00\xff", "more_body": True},
            {"type": "http.response.body", "body": b"\x10", "more_body": False},
        ]
        for message in messages:
            await sink.send(message)

        sent = []

        async def send(message):
            sent.append(message)

        await sink.replay(send)

        assert sent == messages
        assert sink.headers == [(b"content-type", b"application/octet-stream")]

    @pytest.mark.asyncio
    async def test_clear_releases_messages(self):
        """clear() drops captured messages and the start message."""
        sink = ResponseSink()
        await sink.send({"type": "http.response.start", "status": 200, "headers": []})
        sink.clear()

        assert sink.messages == []
        assert sink.status_code is None
