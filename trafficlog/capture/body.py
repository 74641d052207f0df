"""Request and response body capture.

The request body is drained into an owned buffer with its own read cursor
and handed to the downstream app as its ``receive``. The response is written
into an in-memory sink and replayed into the real ``send`` once the app has
finished, so the client gets exactly the bytes the app produced.

The whole response is held in memory before delivery. That is fine for API
payloads but does not suit very large or endless streams.
"""

from starlette.types import Message, Receive, Send


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


class RequestBodyBuffer:
    """Owned copy of a request body with an explicit read cursor."""

    def __init__(self, data: bytes = b"", receive: Receive | None = None) -> None:
        self._data = data
        self._cursor = 0
        self._receive = receive
        self._disconnected = False
        self._delivered = False

    @classmethod
    async def drain(cls, receive: Receive) -> "RequestBodyBuffer":
        """Read every ``http.request`` message from ``receive`` into a buffer."""
        chunks: list[bytes] = []
        disconnected = False
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                disconnected = True
                break
            chunks.append(message.get("body", b""))
            if not message.get("more_body", False):
                break
        buffer = cls(b"".join(chunks), receive)
        buffer._disconnected = disconnected
        return buffer

    @property
    def data(self) -> bytes:
        return self._data

    @property
    def text(self) -> str:
        return _decode(self._data)

    @property
    def cursor(self) -> int:
        return self._cursor

    def read(self, size: int = -1) -> bytes:
        """Return up to ``size`` unread bytes (all of them when negative)."""
        if size < 0:
            end = len(self._data)
        else:
            end = min(self._cursor + size, len(self._data))
        chunk = self._data[self._cursor:end]
        self._cursor = end
        return chunk

    def rewind(self) -> None:
        self._cursor = 0
        self._delivered = False

    async def receive(self) -> Message:
        """ASGI receive callable serving the unread part of the body.

        Once the body is exhausted, calls fall through to the original
        receive so the app can still wait for ``http.disconnect``.
        """
        if not self._delivered:
            self._delivered = True
            return {"type": "http.request", "body": self.read(), "more_body": False}
        if self._disconnected or self._receive is None:
            return {"type": "http.disconnect"}
        return await self._receive()

    def release(self) -> None:
        self._data = b""
        self._cursor = 0


class ResponseSink:
    """In-memory stand-in for the ASGI ``send`` callable."""

    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._start: Message | None = None

    async def send(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self._start = message
        self._messages.append(message)

    @property
    def started(self) -> bool:
        return self._start is not None

    @property
    def status_code(self) -> int | None:
        """Status from ``http.response.start``, None if the response never started."""
        if self._start is None:
            return None
        return self._start["status"]

    @property
    def headers(self) -> list[tuple[bytes, bytes]]:
        if self._start is None:
            return []
        return list(self._start.get("headers", []))

    @property
    def body(self) -> bytes:
        return b"".join(
            m.get("body", b"")
            for m in self._messages
            if m["type"] == "http.response.body"
        )

    @property
    def text(self) -> str:
        return _decode(self.body)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    async def replay(self, send: Send) -> None:
        """Send every captured message to the real ``send``, unchanged and in order."""
        for message in self._messages:
            await send(message)

    def clear(self) -> None:
        self._messages = []
        self._start = None
