"""TerminationPolicy — decides whether a run should stop, and why.

The policy is a pure function of the state it is given.  Rules are
evaluated in a fixed order and the first match wins:

1. ``iteration >= max_iters``            → MAX_ITERATIONS_REACHED
2. best cost within tolerance of target   → TARGET_COST_REACHED
3. ``|cost - prev_cost| <= cost_tolerance`` → TARGET_PRECISION_REACHED
4. no strict improvement for N iterations → NO_IMPROVEMENT_FOR_N_WINDOWS

Solver-declared convergence or failure is handled by the executor before
the policy is consulted and always takes precedence.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

from itersolve.errors import ConfigError
from itersolve.optim.state import IterationState, StateSnapshot, TerminationReason

if TYPE_CHECKING:
    from itersolve.optim.base import Solver
    from itersolve.runtime.spec import ExecutorConfig

State = Union[IterationState, StateSnapshot]


@dataclass(frozen=True)
class TerminationPolicy:
    """Stop rules for a run.

    Attributes:
        max_iters: Iteration ceiling (``None`` = unbounded).
        target_cost: Cost at which the run counts as solved.
        target_cost_tolerance: Slack around *target_cost*.
        cost_tolerance: Minimum change of cost between consecutive
            iterations; smaller changes mean the target precision is reached.
        no_improvement_window: Stop after this many iterations without a
            new best.
    """

    max_iters: Optional[int] = None
    target_cost: Optional[float] = None
    target_cost_tolerance: float = 0.0
    cost_tolerance: Optional[float] = None
    no_improvement_window: Optional[int] = None

    def __post_init__(self) -> None:
        if self.max_iters is not None and self.max_iters < 0:
            raise ConfigError(f"max_iters must be >= 0, got {self.max_iters}")
        if self.target_cost_tolerance < 0:
            raise ConfigError("target_cost_tolerance must be >= 0")
        if self.cost_tolerance is not None and self.cost_tolerance < 0:
            raise ConfigError("cost_tolerance must be >= 0")
        if self.no_improvement_window is not None and self.no_improvement_window <= 0:
            raise ConfigError("no_improvement_window must be a positive integer")

    @classmethod
    def from_config(cls, config: "ExecutorConfig") -> "TerminationPolicy":
        return cls(
            max_iters=config.max_iters,
            target_cost=config.target_cost,
            target_cost_tolerance=config.target_cost_tolerance,
            cost_tolerance=config.cost_tolerance,
            no_improvement_window=config.no_improvement_window,
        )

    @property
    def has_limit(self) -> bool:
        """Whether any policy rule can ever fire."""
        return (
            self.max_iters is not None
            or self.target_cost is not None
            or self.cost_tolerance is not None
            or self.no_improvement_window is not None
        )

    def can_terminate(self, solver: "Solver") -> bool:
        """Whether a run with *solver* is guaranteed a way to stop."""
        return self.has_limit or bool(getattr(solver, "reports_convergence", False))

    def evaluate(self, state: State) -> Optional[TerminationReason]:
        """Decide whether *state* should end the run.

        Args:
            state: State after the latest completed iteration.

        Returns:
            The reason to stop, or ``None`` to continue.
        """
        if self.max_iters is not None and state.iteration >= self.max_iters:
            return TerminationReason.max_iterations()

        if self.target_cost is not None and self._target_reached(state):
            return TerminationReason.target_cost()

        if self.cost_tolerance is not None and self._precision_reached(state):
            return TerminationReason.target_precision()

        window = self.no_improvement_window
        if window is not None and state.iteration - state.last_improvement >= window:
            return TerminationReason.no_improvement(window)

        return None

    def _target_reached(self, state: State) -> bool:
        best = state.best_cost
        if math.isnan(best):
            return False
        if state.maximize:
            return best >= self.target_cost - self.target_cost_tolerance
        return best <= self.target_cost + self.target_cost_tolerance

    def _precision_reached(self, state: State) -> bool:
        cost, prev = state.cost, state.prev_cost
        if not (math.isfinite(cost) and math.isfinite(prev)):
            return False
        return abs(cost - prev) <= self.cost_tolerance
