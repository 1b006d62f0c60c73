"""Session — dispatches one client's run/kill commands.

A transport decodes client commands into Messages and hands them to a
Session; the Session starts and kills processes and writes their output
to the client's stream. Each process's output goes through its own
OutputLimiter, whose kill requests come back into the session's inbox
like any client ``kill``.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
from pathlib import Path

from playrun.channel import MessageChannel, MessageStream
from playrun.config import settings
from playrun.exceptions import InvocationError, PlayrunError, UnknownCommandError
from playrun.processes.limiter import OutputLimiter
from playrun.processes.process import Process, start_process
from playrun.types import Message, MessageKind, ProcessId

_logger = logging.getLogger(__name__)


class Session:
    """Command dispatcher and live-process table for one client."""

    def __init__(
        self,
        out: MessageStream,
        *,
        workdir: Path | None = None,
        msg_limit: int | None = None,
    ) -> None:
        self._out = out
        self._workdir = workdir if workdir is not None else settings.workdir
        self._msg_limit = msg_limit
        self._processes: dict[ProcessId, Process] = {}
        self._watchers: set[asyncio.Task] = set()
        self.inbox = MessageChannel()

    def processes(self) -> list[Process]:
        return list(self._processes.values())

    def get(self, pid: ProcessId) -> Process | None:
        return self._processes.get(pid)

    async def handle(self, message: Message) -> Process | None:
        """Execute one command. Returns the started Process for ``run``."""
        if message.kind == MessageKind.RUN:
            return await self._run(message)
        if message.kind == MessageKind.KILL:
            await self._kill(message.id)
            return None
        raise UnknownCommandError(f"Unknown command kind: {message.kind.value}")

    async def serve(self) -> None:
        """Handle commands from ``inbox`` until it is closed.

        Bad commands are logged and skipped. Live processes are killed
        when the loop ends.
        """
        try:
            async for message in self.inbox:
                try:
                    await self.handle(message)
                except PlayrunError as e:
                    _logger.warning("session: rejected %s command: %s", message.kind.value, e)
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Kill every live process and wait for each to end."""
        processes = list(self._processes.values())
        if processes:
            _logger.info("session: killing %d live processes", len(processes))
        await asyncio.gather(*(p.kill() for p in processes))
        self._processes.clear()

    async def _run(self, message: Message) -> Process | None:
        try:
            args = shlex.split(message.body)
        except ValueError as e:
            raise InvocationError(f"Cannot parse command {message.body!r}: {e}") from e

        limiter = OutputLimiter(self._out, self.inbox, limit=self._msg_limit)
        p = await start_process(self._workdir, args, limiter)
        if p is None:
            return None

        self._processes[p.id] = p
        watcher = asyncio.create_task(self._forget_when_done(p), name=f"playrun-forget-{p.id}")
        self._watchers.add(watcher)
        watcher.add_done_callback(self._watchers.discard)
        _logger.info("session: started process %s: %s", p.id, message.body)
        return p

    async def _kill(self, pid: ProcessId) -> None:
        p = self._processes.pop(pid, None)
        if p is None:
            _logger.debug("session: kill for unknown process %s ignored", pid)
            return
        await p.kill()
        _logger.info("session: killed process %s", pid)

    async def _forget_when_done(self, p: Process) -> None:
        await p.done.wait()
        if self._processes.get(p.id) is p:
            del self._processes[p.id]
