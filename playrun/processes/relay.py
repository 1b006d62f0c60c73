"""Output relay — adapts raw byte writes into Messages."""

from __future__ import annotations

from playrun.channel import MessageStream
from playrun.types import OUTPUT_KINDS, Message, MessageKind, ProcessId


class MessageWriter:
    """Byte sink that sends every write as one Message of a fixed kind.

    One call to ``write`` yields exactly one Message, even when the chunk
    spans several lines.
    """

    def __init__(self, pid: ProcessId, kind: MessageKind, out: MessageStream) -> None:
        if kind not in OUTPUT_KINDS:
            raise ValueError(f"MessageWriter kind must be stdout or stderr, not {kind.value}")
        self.pid = pid
        self.kind = kind
        self._out = out

    async def write(self, data: bytes) -> int:
        await self._out.send(Message(
            id=self.pid,
            kind=self.kind,
            body=data.decode("utf-8", errors="replace"),
        ))
        return len(data)
