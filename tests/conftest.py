"""Shared test fixtures — message collection and throwaway scripts."""

from __future__ import annotations

import asyncio
import stat
from pathlib import Path

import pytest

from playrun.channel import MessageChannel
from playrun.types import Message


async def _collect(channel: MessageChannel, timeout: float = 10.0) -> list[Message]:
    """Read messages until the first ``end`` (inclusive) or the channel closes."""
    messages: list[Message] = []

    async def _read() -> None:
        async for message in channel:
            messages.append(message)
            if message.is_terminal:
                return

    await asyncio.wait_for(_read(), timeout=timeout)
    return messages


def _stdout_text(messages: list[Message]) -> str:
    return "".join(m.body for m in messages if m.kind == "stdout")


@pytest.fixture
def collect():
    return _collect


@pytest.fixture
def stdout_text():
    return _stdout_text


@pytest.fixture
def channel():
    return MessageChannel()


@pytest.fixture
def make_script(tmp_path):
    """Write an executable shell script and return its path."""
    def _factory(contents: str, name: str = "script.sh") -> Path:
        path = tmp_path / name
        path.write_text(contents)
        path.chmod(path.stat().st_mode | stat.S_IEXEC)
        return path
    return _factory
