"""Error taxonomy shared by every itersolve component.

Configuration problems are fatal and detected before the iteration loop
starts.  Solver and objective failures end a run gracefully (the executor
records them as the termination reason).  Observer and checkpoint failures
are collected alongside the result unless the caller opts into fatal mode.
"""

from __future__ import annotations

from typing import Optional


class ExecutionError(Exception):
    """Base class for all errors raised by itersolve."""


class ConfigError(ExecutionError, ValueError):
    """Invalid or underspecified run configuration."""


class SolverError(ExecutionError):
    """Failure reported by a solver while advancing an iteration."""


class ObjectiveError(SolverError):
    """Failure raised while evaluating the objective (cost, gradient, Hessian)."""


class ObserverError(ExecutionError):
    """An observer raised while being notified.

    Attributes:
        observer: Name of the failing observer.
        iteration: Iteration at which the failure happened.
        cause: The original exception.
    """

    def __init__(
        self, observer: str, iteration: int, cause: Optional[BaseException] = None
    ) -> None:
        self.observer = observer
        self.iteration = iteration
        self.cause = cause
        super().__init__(f"Observer '{observer}' failed at iteration {iteration}: {cause!r}")


class CheckpointError(ExecutionError):
    """A checkpoint could not be written or read."""


class CheckpointVersionMismatch(CheckpointError):
    """A checkpoint artifact was written by an incompatible format version."""

    def __init__(self, expected: object, found: object, what: str = "checkpoint") -> None:
        self.expected = expected
        self.found = found
        super().__init__(
            f"Incompatible {what} version: expected {expected!r}, found {found!r}"
        )
