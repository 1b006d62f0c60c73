"""Output limiter — caps the messages one process may send.

Runaway programs (``while true; do echo; done``) would otherwise flood
the client. After ``limit`` messages the limiter stops forwarding,
asks for the process to be killed, and then only lets the final
``end`` message through.

The limiter is a synchronous decorator: ``send`` forwards inline, so a
slow destination holds up the relay that is writing. There is no
background task per process.
"""

from __future__ import annotations

import logging

from playrun.channel import MessageStream
from playrun.config import settings
from playrun.types import Message, MessageKind

_logger = logging.getLogger(__name__)


class OutputLimiter:
    """Wraps ``dest`` for a single process's output sequence.

    Messages ``0 .. limit-1`` and the ``end`` message are forwarded. The
    message numbered ``limit`` is replaced by one ``kill`` request on
    ``kill``; everything after it is dropped until ``end`` arrives.
    """

    def __init__(
        self,
        dest: MessageStream,
        kill: MessageStream,
        limit: int | None = None,
    ) -> None:
        self._dest = dest
        self._kill = kill
        self._limit = settings.msg_limit if limit is None else limit
        if self._limit < 0:
            raise ValueError("limit must be >= 0")
        self._count = 0
        self._finished = False
        self._kill_requested = False

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def count(self) -> int:
        return self._count

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def kill_requested(self) -> bool:
        return self._kill_requested

    async def send(self, message: Message) -> None:
        if self._finished:
            return

        # Claim a slot before awaiting anything: stdout and stderr relays
        # may call in concurrently.
        n = self._count
        self._count += 1

        if n < self._limit or message.is_terminal:
            if message.is_terminal:
                self._finished = True
            await self._dest.send(message)
        elif n == self._limit:
            self._kill_requested = True
            _logger.warning(
                "process %s exceeded %d messages, requesting kill",
                message.id, self._limit,
            )
            await self._kill.send(Message(id=message.id, kind=MessageKind.KILL))

    def close(self) -> None:
        # The destination is shared with other processes; leave it open.
        self._finished = True
