"""Message channels — the streams processes write their messages to.

Anything with ``send`` and ``close`` can be a destination: the transport
that carries messages to the client, an ``OutputLimiter`` in front of it,
or the in-memory ``MessageChannel`` below.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Protocol, runtime_checkable

from playrun.exceptions import ChannelClosedError
from playrun.types import Message

_CLOSED = object()


@runtime_checkable
class MessageStream(Protocol):
    """Write side of a message destination.

    Implementations must accept concurrent senders; each ``send`` is
    delivered as one unit.
    """

    async def send(self, message: Message) -> None: ...

    def close(self) -> None: ...


class MessageChannel:
    """Unbounded queue-backed stream with close semantics and async iteration.

    Senders never block. Readers see every message sent before ``close``,
    then the end of the stream.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, message: Message) -> None:
        if self._closed:
            raise ChannelClosedError(
                f"channel closed, dropped {message.kind.value} message for {message.id}"
            )
        self._queue.put_nowait(message)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def recv(self) -> Message | None:
        """Next message, or None once the channel is closed and drained."""
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker for the next reader
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    async def __aiter__(self) -> AsyncIterator[Message]:
        while True:
            message = await self.recv()
            if message is None:
                return
            yield message

    def drain(self) -> list[Message]:
        """Pop every message already queued, without waiting."""
        items: list[Message] = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                self._queue.put_nowait(_CLOSED)
                break
            items.append(item)
        return items
