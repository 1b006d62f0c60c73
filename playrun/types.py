"""Core types shared across all playrun subsystems."""

from __future__ import annotations

from enum import Enum
from typing import TypeAlias

from pydantic import BaseModel

ProcessId: TypeAlias = str


# ── Message kinds ────────────────────────────────────────────────────────────


class MessageKind(str, Enum):
    # inbound commands
    RUN = "run"
    KILL = "kill"
    # outbound events
    STDOUT = "stdout"
    STDERR = "stderr"
    END = "end"


OUTPUT_KINDS = frozenset({MessageKind.STDOUT, MessageKind.STDERR})


# ── Process states ───────────────────────────────────────────────────────────


class ProcessState(str, Enum):
    CREATED = "created"
    SPAWNING = "spawning"
    RUNNING = "running"
    ENDED = "ended"
    SPAWN_FAILED = "spawn_failed"


# ── Messages ─────────────────────────────────────────────────────────────────


class Message(BaseModel):
    """The unit exchanged with the client.

    Used both for inbound commands (``run``, ``kill``) and for outbound
    output and lifecycle events, as distinguished by ``kind``.
    """

    id: ProcessId
    kind: MessageKind
    body: str = ""

    model_config = {"frozen": True}

    @property
    def is_terminal(self) -> bool:
        return self.kind == MessageKind.END
