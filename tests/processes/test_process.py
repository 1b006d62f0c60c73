"""Tests for the process supervisor — real subprocesses via /bin/sh."""

from __future__ import annotations

import asyncio
import sys

import pytest

from playrun.channel import MessageChannel
from playrun.exceptions import InvocationError
from playrun.ids import uniq
from playrun.processes.limiter import OutputLimiter
from playrun.processes.process import exit_error, kill_process, start_process
from playrun.types import MessageKind, ProcessState

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")

HELLO = """#!/bin/sh

echo "hello there"
echo "hello cat"
"""


@pytest.mark.asyncio
async def test_hello_script(channel, collect, stdout_text, make_script):
    script = make_script(HELLO)
    p = await start_process(None, [str(script)], channel)
    assert p is not None

    messages = await collect(channel)
    await p.wait()

    assert stdout_text(messages) == "hello there\nhello cat\n"
    assert all(m.id == p.id for m in messages)
    assert [m.kind for m in messages][-1] == MessageKind.END
    assert messages[-1].body == ""
    assert p.done.is_set()
    assert p.returncode == 0
    assert p.state == ProcessState.ENDED


@pytest.mark.asyncio
async def test_missing_executable(channel):
    p = await start_process(None, ["./does-not-exist"], channel)
    assert p is None

    messages = channel.drain()
    assert len(messages) == 1
    assert messages[0].kind == MessageKind.END
    assert messages[0].body != ""
    assert channel.closed
    assert await channel.recv() is None


@pytest.mark.asyncio
async def test_bad_workdir_is_spawn_failure(channel, tmp_path):
    p = await start_process(tmp_path / "nope", ["true"], channel)
    assert p is None
    assert channel.drain()[0].kind == MessageKind.END
    assert channel.closed


@pytest.mark.asyncio
async def test_embedded_nul_is_spawn_failure(channel):
    p = await start_process(None, ["echo\x00x"], channel)
    assert p is None

    messages = channel.drain()
    assert [m.kind for m in messages] == [MessageKind.END]
    assert "null" in messages[0].body
    assert channel.closed


@pytest.mark.asyncio
async def test_spawn_failure_on_closed_destination():
    out = MessageChannel()
    out.close()
    assert await start_process(None, ["./does-not-exist"], out) is None


@pytest.mark.asyncio
async def test_empty_args_rejected_without_traffic(channel):
    before = uniq.peek()
    with pytest.raises(InvocationError):
        await start_process(None, [], channel)
    assert uniq.peek() == before
    assert channel.drain() == []
    assert not channel.closed


@pytest.mark.asyncio
async def test_stdout_and_stderr_are_separated(channel, collect):
    p = await start_process(None, ["sh", "-c", "echo out; echo err >&2"], channel)
    messages = await collect(channel)
    await p.wait()

    out = "".join(m.body for m in messages if m.kind == MessageKind.STDOUT)
    err = "".join(m.body for m in messages if m.kind == MessageKind.STDERR)
    assert out == "out\n"
    assert err == "err\n"


@pytest.mark.asyncio
async def test_chunks_arrive_in_write_order(channel, collect, stdout_text):
    script = "for i in 1 2 3 4 5; do echo $i; sleep 0.05; done"
    p = await start_process(None, ["sh", "-c", script], channel)
    messages = await collect(channel)
    await p.wait()

    assert stdout_text(messages) == "1\n2\n3\n4\n5\n"
    assert messages[-1].kind == MessageKind.END


@pytest.mark.asyncio
async def test_nonzero_exit_reported_in_end(channel, collect):
    p = await start_process(None, ["sh", "-c", "exit 3"], channel)
    messages = await collect(channel)

    assert messages[-1].kind == MessageKind.END
    assert messages[-1].body == "exit status 3"
    assert await p.wait() == 3


@pytest.mark.asyncio
async def test_workdir_is_used(channel, collect, stdout_text, tmp_path):
    p = await start_process(tmp_path, ["pwd"], channel)
    messages = await collect(channel)
    await p.wait()

    assert stdout_text(messages).strip() == str(tmp_path.resolve())


@pytest.mark.asyncio
async def test_start_does_not_wait_for_exit(channel):
    p = await start_process(None, ["sleep", "30"], channel)
    assert p.state == ProcessState.RUNNING
    assert not p.done.is_set()
    await p.kill()


@pytest.mark.asyncio
async def test_kill_running_process(channel, collect):
    p = await start_process(None, ["sleep", "30"], channel)
    await asyncio.wait_for(p.kill(), timeout=5)

    assert p.done.is_set()
    messages = await collect(channel)
    ends = [m for m in messages if m.kind == MessageKind.END]
    assert len(ends) == 1
    assert ends[0].body == "signal: killed"


@pytest.mark.asyncio
async def test_kill_is_idempotent(channel):
    p = await start_process(None, ["sleep", "30"], channel)
    await asyncio.wait_for(p.kill(), timeout=5)
    await asyncio.wait_for(p.kill(), timeout=1)
    await asyncio.wait_for(kill_process(p), timeout=1)

    ends = [m for m in channel.drain() if m.kind == MessageKind.END]
    assert len(ends) == 1


@pytest.mark.asyncio
async def test_kill_after_natural_exit(channel, collect):
    p = await start_process(None, ["true"], channel)
    await p.wait()
    await asyncio.wait_for(p.kill(), timeout=1)

    messages = await collect(channel)
    assert [m.kind for m in messages] == [MessageKind.END]
    assert messages[0].body == ""


@pytest.mark.asyncio
async def test_kill_none_is_noop():
    await kill_process(None)


@pytest.mark.asyncio
async def test_concurrent_starts_get_distinct_ids(channel):
    procs = await asyncio.gather(*(start_process(None, ["true"], channel) for _ in range(20)))
    await asyncio.gather(*(p.wait() for p in procs))

    assert len({p.id for p in procs}) == 20
    ends = [m for m in channel.drain() if m.kind == MessageKind.END]
    assert sorted(m.id for m in ends) == sorted(p.id for p in procs)


@pytest.mark.asyncio
async def test_end_is_last_for_each_process(channel):
    procs = await asyncio.gather(*(
        start_process(None, ["sh", "-c", f"echo {i}; echo {i} >&2"], channel)
        for i in range(5)
    ))
    await asyncio.gather(*(p.wait() for p in procs))

    messages = channel.drain()
    for p in procs:
        mine = [m for m in messages if m.id == p.id]
        assert mine[-1].kind == MessageKind.END
        assert sum(m.kind == MessageKind.END for m in mine) == 1


@pytest.mark.asyncio
async def test_runaway_output_is_capped_and_killed(channel):
    kills = MessageChannel()
    limiter = OutputLimiter(channel, kills, limit=5)
    p = await start_process(None, ["sh", "-c", "while :; do echo spam; done"], limiter, chunk_size=16)

    request = await asyncio.wait_for(kills.recv(), timeout=10)
    assert request.kind == MessageKind.KILL
    assert request.id == p.id
    await asyncio.wait_for(p.kill(), timeout=5)

    messages = channel.drain()
    assert sum(m.kind != MessageKind.END for m in messages) <= 5
    assert messages[-1].kind == MessageKind.END
    assert messages[-1].body == "signal: killed"
    assert kills.drain() == []


@pytest.mark.asyncio
async def test_closed_destination_kills_child():
    out = MessageChannel()
    out.close()
    p = await start_process(None, ["sh", "-c", "while :; do echo spam; done"], out)

    assert await asyncio.wait_for(p.wait(), timeout=5) < 0
    assert p.state == ProcessState.ENDED


class _BrokenStdout:
    """Destination whose transport drops on stdout."""

    def __init__(self):
        self.messages = []

    async def send(self, message):
        if message.kind == MessageKind.STDOUT:
            raise ConnectionResetError("client went away")
        self.messages.append(message)

    def close(self):
        pass


@pytest.mark.asyncio
async def test_transport_error_still_sends_one_end():
    out = _BrokenStdout()
    p = await start_process(None, ["sh", "-c", "echo hi; sleep 3; echo bye >&2"], out)

    assert await asyncio.wait_for(p.wait(), timeout=5) < 0
    assert p.state == ProcessState.ENDED
    ends = [m for m in out.messages if m.kind == MessageKind.END]
    assert len(ends) == 1
    assert out.messages[-1].kind == MessageKind.END
    assert ends[0].body == "signal: killed"


def test_exit_error_descriptions():
    assert exit_error(0) == ""
    assert exit_error(1) == "exit status 1"
    assert exit_error(-9) == "signal: killed"
    assert exit_error(-15) == "signal: terminated"
