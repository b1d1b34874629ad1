"""Iteration state, immutable snapshots, and termination reasons.

:class:`IterationState` is the mutable record of a single run.  Only the
executor mutates it; observers, solvers and the checkpointer receive a
:class:`StateSnapshot` whose parameter-like fields are private copies.
"""

from __future__ import annotations

import copy
import math
import time
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np


class TerminationKind(Enum):
    """Closed set of reasons a run can stop for."""

    UNTERMINATED = "unterminated"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"
    TARGET_COST_REACHED = "target_cost_reached"
    TARGET_PRECISION_REACHED = "target_precision_reached"
    NO_IMPROVEMENT_FOR_N_WINDOWS = "no_improvement_for_n_windows"
    SOLVER_CONVERGED = "solver_converged"
    SOLVER_FAILED = "solver_failed"
    USER_ABORTED = "user_aborted"


_TEXT = {
    TerminationKind.UNTERMINATED: "Not terminated",
    TerminationKind.MAX_ITERATIONS_REACHED: "Maximum number of iterations reached",
    TerminationKind.TARGET_COST_REACHED: "Target cost value reached",
    TerminationKind.TARGET_PRECISION_REACHED: "Target precision reached",
    TerminationKind.NO_IMPROVEMENT_FOR_N_WINDOWS: "No improvement of the best cost",
    TerminationKind.SOLVER_CONVERGED: "Solver converged",
    TerminationKind.SOLVER_FAILED: "Solver failed",
    TerminationKind.USER_ABORTED: "Aborted by user",
}


@dataclass(frozen=True)
class TerminationReason:
    """Why a run stopped.

    Attributes:
        kind: The :class:`TerminationKind`.
        window: Iteration window for ``NO_IMPROVEMENT_FOR_N_WINDOWS``.
        error: Failure detail for ``SOLVER_FAILED``.
    """

    kind: TerminationKind = TerminationKind.UNTERMINATED
    window: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def unterminated(cls) -> "TerminationReason":
        return cls(TerminationKind.UNTERMINATED)

    @classmethod
    def max_iterations(cls) -> "TerminationReason":
        return cls(TerminationKind.MAX_ITERATIONS_REACHED)

    @classmethod
    def target_cost(cls) -> "TerminationReason":
        return cls(TerminationKind.TARGET_COST_REACHED)

    @classmethod
    def target_precision(cls) -> "TerminationReason":
        return cls(TerminationKind.TARGET_PRECISION_REACHED)

    @classmethod
    def no_improvement(cls, window: int) -> "TerminationReason":
        return cls(TerminationKind.NO_IMPROVEMENT_FOR_N_WINDOWS, window=window)

    @classmethod
    def solver_converged(cls) -> "TerminationReason":
        return cls(TerminationKind.SOLVER_CONVERGED)

    @classmethod
    def solver_failed(cls, error: str) -> "TerminationReason":
        return cls(TerminationKind.SOLVER_FAILED, error=error)

    @classmethod
    def user_aborted(cls) -> "TerminationReason":
        return cls(TerminationKind.USER_ABORTED)

    @property
    def terminated(self) -> bool:
        """``True`` for every kind except ``UNTERMINATED``."""
        return self.kind is not TerminationKind.UNTERMINATED

    def text(self) -> str:
        """Human-readable description."""
        base = _TEXT[self.kind]
        if self.kind is TerminationKind.NO_IMPROVEMENT_FOR_N_WINDOWS:
            return f"{base} for {self.window} iterations"
        if self.kind is TerminationKind.SOLVER_FAILED and self.error:
            return f"{base}: {self.error}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "window": self.window, "error": self.error}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TerminationReason":
        return cls(
            TerminationKind(data["kind"]),
            window=data.get("window"),
            error=data.get("error"),
        )

    def __str__(self) -> str:
        return self.text()


def freeze(value: Any) -> Any:
    """Return a private, read-only-where-possible copy of *value*.

    numpy arrays are copied and flagged non-writeable; everything else is
    deep-copied.
    """
    if isinstance(value, np.ndarray):
        arr = value.copy()
        arr.setflags(write=False)
        return arr
    return copy.deepcopy(value)


def thaw(value: Any) -> Any:
    """Return a writable private copy of a value produced by :func:`freeze`."""
    if isinstance(value, np.ndarray):
        return value.copy()
    return copy.deepcopy(value)


@dataclass(frozen=True)
class StateSnapshot:
    """Immutable view of an :class:`IterationState` at one instant.

    This is what observers, solvers and the checkpointer see.  Field
    meanings match :class:`IterationState`.
    """

    iteration: int
    param: Any
    cost: float
    prev_param: Any
    prev_cost: float
    best_param: Any
    best_cost: float
    prev_best_param: Any
    prev_best_cost: float
    gradient: Any
    hessian: Any
    improved: bool
    last_improvement: int
    max_iters: Optional[int]
    maximize: bool
    termination_reason: TerminationReason
    cost_count: int
    gradient_count: int
    hessian_count: int
    start_time: float
    last_iter_duration: float
    elapsed: float

    @property
    def terminated(self) -> bool:
        return self.termination_reason.terminated

    def metrics(self) -> Dict[str, Any]:
        """Flat scalar record used by logging-style observers."""
        return {
            "iteration": self.iteration,
            "cost": float(self.cost),
            "best_cost": float(self.best_cost),
            "improved": self.improved,
            "cost_count": self.cost_count,
            "gradient_count": self.gradient_count,
            "hessian_count": self.hessian_count,
            "iter_time": self.last_iter_duration,
            "elapsed": self.elapsed,
        }


@dataclass
class IterationState:
    """Mutable bookkeeping for a single optimisation run.

    Only the executor mutates instances of this class.

    Attributes:
        param: Current candidate.
        cost: Cost of *param* (``nan`` until the first evaluation).
        best_param: Best candidate seen so far.
        best_cost: Cost of *best_param*; starts at the worst possible value
            so the first finite cost always becomes the best.
        iteration: Number of completed iterations.
        last_improvement: Iteration at which *best_cost* last improved.
        termination_reason: Unterminated until the loop decides otherwise.
    """

    param: Any = None
    cost: float = math.nan
    prev_param: Any = None
    prev_cost: float = math.nan
    best_param: Any = None
    best_cost: float = math.inf
    prev_best_param: Any = None
    prev_best_cost: float = math.inf
    gradient: Any = None
    hessian: Any = None
    improved: bool = False
    iteration: int = 0
    last_improvement: int = 0
    max_iters: Optional[int] = None
    maximize: bool = False
    termination_reason: TerminationReason = field(default_factory=TerminationReason)
    cost_count: int = 0
    gradient_count: int = 0
    hessian_count: int = 0
    start_time: float = 0.0
    last_iter_duration: float = 0.0
    elapsed: float = 0.0

    @classmethod
    def initial(
        cls,
        param: Any,
        max_iters: Optional[int] = None,
        maximize: bool = False,
    ) -> "IterationState":
        """Create the state of a fresh run starting from *param*."""
        worst = -math.inf if maximize else math.inf
        return cls(
            param=copy.deepcopy(param),
            best_param=copy.deepcopy(param),
            best_cost=worst,
            prev_best_cost=worst,
            max_iters=max_iters,
            maximize=maximize,
            start_time=time.time(),
        )

    def is_better(self, cost: float) -> bool:
        """Whether *cost* is strictly better than the current best.

        NaN is never better; ties keep the prior best.
        """
        if cost is None or math.isnan(cost):
            return False
        if self.maximize:
            return cost > self.best_cost
        return cost < self.best_cost

    def update(
        self,
        param: Any,
        cost: float,
        gradient: Any = None,
        hessian: Any = None,
    ) -> bool:
        """Fold a new candidate into the state.

        Current, previous and best fields move together so no reader can
        observe a half-updated state.

        Returns:
            ``True`` if the candidate became the new best.
        """
        self.prev_param = self.param
        self.prev_cost = self.cost
        self.param = param
        self.cost = cost
        self.gradient = gradient
        self.hessian = hessian
        self.improved = self.is_better(cost)
        if self.improved:
            self.prev_best_param = self.best_param
            self.prev_best_cost = self.best_cost
            self.best_param = copy.deepcopy(param)
            self.best_cost = cost
        return self.improved

    def increment(self) -> None:
        """Count one completed iteration, recording an improvement if any."""
        self.iteration += 1
        if self.improved:
            self.last_improvement = self.iteration

    def snapshot(self) -> StateSnapshot:
        """Return an immutable copy safe to hand to collaborators."""
        return StateSnapshot(**{f.name: freeze(getattr(self, f.name)) for f in fields(self)})

    @classmethod
    def from_snapshot(cls, snapshot: StateSnapshot) -> "IterationState":
        """Rebuild a mutable state with the values of *snapshot*."""
        return cls(**{f.name: thaw(getattr(snapshot, f.name)) for f in fields(cls)})

    def to_dict(self) -> Dict[str, Any]:
        """Plain mapping of all fields (used by checkpoints)."""
        data = {f.name: copy.deepcopy(getattr(self, f.name)) for f in fields(self)}
        data["termination_reason"] = self.termination_reason.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IterationState":
        """Rebuild a state from :meth:`to_dict` output."""
        values = dict(data)
        values["termination_reason"] = TerminationReason.from_dict(
            values.get("termination_reason") or {"kind": "unterminated"}
        )
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in values.items() if k in known})
