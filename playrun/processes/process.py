"""Process supervisor — starts child programs and reports their output.

A started process writes ``stdout`` / ``stderr`` Messages to its output
stream as the child produces them, followed by exactly one ``end``
Message once the child has exited. ``start_process`` returns as soon as
the child is spawned; a background task owns the wait.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from typing import Sequence

from playrun.channel import MessageStream
from playrun.config import settings
from playrun.exceptions import InvocationError
from playrun.ids import uniq
from playrun.processes.relay import MessageWriter
from playrun.processes.state_machine import ProcessStateMachine
from playrun.types import Message, MessageKind, ProcessId, ProcessState

_logger = logging.getLogger(__name__)

PathLike = str | os.PathLike

# Wait tasks of live processes; the event loop only keeps weak references.
_waiters: set[asyncio.Task] = set()


class Process:
    """A running (or finished) child program.

    ``done`` is set exactly once, after the ``end`` Message went out.
    """

    def __init__(self, pid: ProcessId, out: MessageStream, chunk_size: int | None = None) -> None:
        self.id = pid
        self.done = asyncio.Event()
        self.os_pid: int | None = None
        self.returncode: int | None = None
        self._out = out
        self._chunk_size = chunk_size or settings.read_chunk_size
        self._machine = ProcessStateMachine(pid)
        self._run: asyncio.subprocess.Process | None = None
        self._waiter: asyncio.Task | None = None

    def __repr__(self) -> str:
        return f"<Process id={self.id} os_pid={self.os_pid} state={self.state.value}>"

    @property
    def state(self) -> ProcessState:
        return self._machine.state

    async def kill(self) -> None:
        """Kill the child if it is still running and wait for it to end."""
        self._signal_kill()
        await self.done.wait()

    def _signal_kill(self) -> None:
        if self._run is None or self._run.returncode is not None:
            return
        _logger.debug("killing process %s (os pid %s)", self.id, self.os_pid)
        try:
            self._run.kill()
        except ProcessLookupError:
            pass  # exited, not reaped yet

    async def wait(self) -> int | None:
        """Block until the process has ended; return its exit code."""
        await self.done.wait()
        return self.returncode

    async def _spawn(self, workdir: PathLike | None, args: Sequence[str]) -> bool:
        """Start the child and its wait task.

        A child that cannot be spawned is reported as the ``end`` message,
        after which ``out`` is closed and False is returned.
        """
        try:
            await self._start(workdir, args)
        except (OSError, ValueError) as e:
            self._machine.transition(ProcessState.SPAWN_FAILED)
            _logger.warning("process %s failed to start %r: %s", self.id, args[0], e)
            try:
                await self._try_end(str(e))
            finally:
                self._out.close()
                self.done.set()
            return False

        self._waiter = asyncio.create_task(self._wait(), name=f"playrun-wait-{self.id}")
        _waiters.add(self._waiter)
        self._waiter.add_done_callback(_waiters.discard)
        return True

    async def _start(self, workdir: PathLike | None, args: Sequence[str]) -> None:
        self._machine.transition(ProcessState.SPAWNING)
        self._run = await asyncio.create_subprocess_exec(
            args[0], *args[1:],
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=workdir,
        )
        self.os_pid = self._run.pid
        self._machine.transition(ProcessState.RUNNING)
        _logger.debug("process %s started: os pid %d, %r", self.id, self.os_pid, list(args))

    async def _wait(self) -> None:
        """Relay output until the child exits, then send ``end``."""
        run = self._run
        try:
            await asyncio.gather(
                self._pump(run.stdout, MessageWriter(self.id, MessageKind.STDOUT, self._out)),
                self._pump(run.stderr, MessageWriter(self.id, MessageKind.STDERR, self._out)),
            )
            self.returncode = await run.wait()
            self._machine.transition(ProcessState.ENDED)
            _logger.debug("process %s ended with code %d", self.id, self.returncode)
            await self._try_end(exit_error(self.returncode))
        finally:
            self.done.set()  # unblock waiting kill calls

    async def _pump(self, stream: asyncio.StreamReader, writer: MessageWriter) -> None:
        try:
            while True:
                chunk = await stream.read(self._chunk_size)
                if not chunk:
                    return
                await writer.write(chunk)
        except Exception as e:
            # Nobody takes the output any more; don't leave the child
            # blocked on a full pipe.
            _logger.warning("process %s: %s relay failed: %s", self.id, writer.kind.value, e)
            self._signal_kill()

    async def _end(self, error: str) -> None:
        await self._out.send(Message(id=self.id, kind=MessageKind.END, body=error))

    async def _try_end(self, error: str) -> None:
        try:
            await self._end(error)
        except Exception as e:
            _logger.warning("process %s: could not deliver end message: %s", self.id, e)


def exit_error(returncode: int) -> str:
    """Describe an exit code the way the client displays it; "" for success."""
    if returncode == 0:
        return ""
    if returncode < 0:
        try:
            name = signal.strsignal(-returncode)
        except ValueError:
            name = None
        return f"signal: {(name or str(-returncode)).lower()}"
    return f"exit status {returncode}"


async def start_process(
    workdir: PathLike | None,
    args: Sequence[str],
    out: MessageStream,
    *,
    chunk_size: int | None = None,
) -> Process | None:
    """Start ``args`` and stream its output and end event to ``out``.

    Returns the running Process without waiting for it. If the program
    cannot be spawned, an ``end`` Message carrying the error is sent,
    ``out`` is closed and None is returned.

    Raises InvocationError when ``args`` is empty.
    """
    if not args:
        raise InvocationError("No arguments found")

    p = Process(str(uniq.next()), out, chunk_size=chunk_size)
    if not await p._spawn(workdir, args):
        return None
    return p


async def kill_process(p: Process | None) -> None:
    """Kill ``p`` and wait for it to end; a None handle is ignored."""
    if p is None:
        return
    await p.kill()
