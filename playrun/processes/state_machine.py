"""Process state machine — enforces valid lifecycle transitions."""

from __future__ import annotations

import logging

from playrun.exceptions import ProcessStateError
from playrun.types import ProcessId, ProcessState

_logger = logging.getLogger(__name__)

VALID_TRANSITIONS: dict[ProcessState, set[ProcessState]] = {
    ProcessState.CREATED: {ProcessState.SPAWNING},
    ProcessState.SPAWNING: {ProcessState.RUNNING, ProcessState.SPAWN_FAILED},
    ProcessState.RUNNING: {ProcessState.ENDED},
    ProcessState.ENDED: set(),  # terminal
    ProcessState.SPAWN_FAILED: set(),  # terminal
}

TERMINAL_STATES = frozenset(
    state for state, targets in VALID_TRANSITIONS.items() if not targets
)


class ProcessStateMachine:
    """Lifecycle state of a single supervised process."""

    def __init__(self, pid: ProcessId) -> None:
        self.pid = pid
        self._state = ProcessState.CREATED

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    def transition(self, target: ProcessState) -> None:
        if target not in VALID_TRANSITIONS[self._state]:
            raise ProcessStateError(
                f"Cannot transition process {self.pid} "
                f"from {self._state.value} to {target.value}"
            )
        _logger.debug("process %s: %s -> %s", self.pid, self._state.value, target.value)
        self._state = target
