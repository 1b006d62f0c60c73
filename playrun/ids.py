"""Identity source — process-wide sequence of small integers.

Values name processes (and, by convention of callers, their temporary
files). Nothing is persisted; numbering restarts with the interpreter.
"""

from __future__ import annotations

import threading


class IdSource:
    """Thread-safe, strictly increasing integer generator."""

    def __init__(self, start: int = 0) -> None:
        self._next = start
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
        return value

    def peek(self) -> int:
        """Value the next call to :meth:`next` would return."""
        with self._lock:
            return self._next


uniq = IdSource()
