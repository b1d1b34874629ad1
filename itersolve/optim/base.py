"""Base solver interface and the per-iteration data it returns.

Every optimisation algorithm (gradient descent, Newton, Brent, particle
swarm, ...) implements :class:`Solver` so the executor can drive it
uniformly.  The executor owns the iteration state; a solver only proposes
the next candidate and reports whether it considers itself done.
"""

from __future__ import annotations

import pickle
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from itersolve.errors import CheckpointVersionMismatch

if TYPE_CHECKING:
    from itersolve.optim.problem import Problem
    from itersolve.optim.state import StateSnapshot


class SolverStatus(Enum):
    """What a solver reports after one call to :meth:`Solver.advance`."""

    CONTINUE = "continue"
    CONVERGED = "converged"
    TARGET_PRECISION = "target_precision"
    FAILED = "failed"


@dataclass
class IterationData:
    """Outcome of a single solver iteration.

    Attributes:
        param: New candidate.  ``None`` keeps the current parameter.
        cost: Cost of *param*.  ``None`` lets the executor evaluate it.
        gradient: Optional gradient at *param*.
        hessian: Optional Hessian at *param*.
        status: Continuation / convergence / failure signal.
        error: Failure detail when *status* is ``FAILED``.
    """

    param: Any = None
    cost: Optional[float] = None
    gradient: Any = None
    hessian: Any = None
    status: SolverStatus = SolverStatus.CONTINUE
    error: Optional[str] = None


class Solver(ABC):
    """Abstract base class for iterative solvers.

    Subclasses must implement :meth:`advance`.

    Attributes:
        reports_convergence: Whether the solver may ever return
            ``CONVERGED`` or ``TARGET_PRECISION``.  A run whose solver cannot
            converge needs another termination condition.
    """

    reports_convergence: bool = False

    @property
    def name(self) -> str:
        """Human-readable solver name."""
        return type(self).__name__

    def init(self, problem: "Problem", state: "StateSnapshot") -> Optional[IterationData]:
        """Prepare the solver before the first iteration of a fresh run.

        Not called when resuming from a checkpoint.  The default
        implementation does nothing.

        Args:
            problem: Evaluation-counting objective.
            state: Read-only snapshot of the initial state.

        Returns:
            Optional data folded into the state without counting an
            iteration (e.g. the cost of the starting point).
        """
        return None

    @abstractmethod
    def advance(self, problem: "Problem", state: "StateSnapshot") -> IterationData:
        """Compute one iteration.

        Args:
            problem: Evaluation-counting objective.
            state: Read-only snapshot of the current state.

        Returns:
            The new candidate and a :class:`SolverStatus`.

        Raises:
            SolverError: On algorithmic failure (the executor records it as
                the termination reason).
        """


class Resumable:
    """Mixin for solvers whose internal state survives a checkpoint.

    The default implementation pickles the instance ``__dict__``.  Solvers
    with non-picklable members override :meth:`snapshot` / :meth:`restore`
    and bump :attr:`snapshot_version` whenever the layout changes.
    """

    snapshot_version: int = 1

    def snapshot(self) -> bytes:
        """Serialise the solver-internal state to an opaque blob."""
        return pickle.dumps(
            {"version": self.snapshot_version, "state": dict(self.__dict__)}
        )

    def restore(self, blob: bytes) -> None:
        """Restore the solver-internal state from :meth:`snapshot` output.

        Raises:
            CheckpointVersionMismatch: If the blob was produced by a
                different :attr:`snapshot_version`.
        """
        data = pickle.loads(blob)
        if data.get("version") != self.snapshot_version:
            raise CheckpointVersionMismatch(
                self.snapshot_version, data.get("version"), what="solver snapshot"
            )
        self.__dict__.update(data["state"])
