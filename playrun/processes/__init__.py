"""Process supervision — run child programs and relay their output.

This package provides:
- start_process / Process: spawn, wait on and kill child programs
- MessageWriter: turn raw stdout/stderr chunks into Messages
- OutputLimiter: cap the messages a single process may send
"""

from playrun.processes.limiter import OutputLimiter
from playrun.processes.process import Process, kill_process, start_process
from playrun.processes.relay import MessageWriter

__all__ = [
    "MessageWriter",
    "OutputLimiter",
    "Process",
    "kill_process",
    "start_process",
]
