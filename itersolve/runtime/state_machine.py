"""Lifecycle state machine for a single executor run.

Defines the phases an :class:`~itersolve.runtime.executor.Executor` goes
through and the allowed transitions between them.  The state machine
prevents illegal operations (e.g. calling ``run()`` twice on the same
executor) and keeps the loop logic clean.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List

from itersolve.errors import ConfigError


class RunPhase(Enum):
    """Possible phases of an executor."""

    CONFIGURED = "configured"
    RUNNING = "running"
    TERMINATED = "terminated"


# Allowed transitions encoded as adjacency list
_TRANSITIONS: Dict[RunPhase, List[RunPhase]] = {
    RunPhase.CONFIGURED: [RunPhase.RUNNING, RunPhase.TERMINATED],
    RunPhase.RUNNING: [RunPhase.TERMINATED],
    RunPhase.TERMINATED: [],
}


class StateMachine:
    """Manages valid run-phase transitions.

    Raises :class:`~itersolve.errors.ConfigError` (a :class:`ValueError`)
    on illegal transition attempts.

    Example::

        sm = StateMachine()
        sm.transition(RunPhase.RUNNING)
        sm.transition(RunPhase.TERMINATED)
        assert sm.state == RunPhase.TERMINATED
    """

    def __init__(self) -> None:
        self._state = RunPhase.CONFIGURED

    @property
    def state(self) -> RunPhase:
        """Current run phase."""
        return self._state

    def can_transition(self, target: RunPhase) -> bool:
        """Check whether transitioning to *target* is allowed."""
        return target in _TRANSITIONS.get(self._state, [])

    def transition(self, target: RunPhase) -> None:
        """Transition to *target* phase.

        Args:
            target: Desired next phase.

        Raises:
            ConfigError: If the transition is not allowed.
        """
        if not self.can_transition(target):
            raise ConfigError(
                f"Invalid transition: {self._state.value} -> {target.value}"
            )
        self._state = target
