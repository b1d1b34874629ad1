"""Container for the outcome of an optimisation run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from itersolve.errors import CheckpointError, ObserverError
from itersolve.optim.state import StateSnapshot, TerminationKind, TerminationReason


@dataclass
class OptimizationResult:
    """Outcome of :meth:`Executor.run`.

    Returned on every termination path, including solver failure and user
    abort, so the best candidate found so far is never lost.

    Attributes:
        best_param: Best candidate of the run.
        best_cost: Cost of *best_param*.
        iteration_count: Number of completed iterations.
        termination_reason: Why the run stopped.
        total_duration: Run time in seconds (accumulated across resumes).
        param: Last candidate.
        cost: Cost of the last candidate.
        cost_count: Objective evaluations.
        gradient_count: Gradient evaluations.
        hessian_count: Hessian evaluations.
        final_state: Snapshot of the state the run ended in.
        observer_errors: Collected observer failures.
        checkpoint_errors: Collected checkpoint failures.
        solver_name: Name of the solver that produced the result.
    """

    best_param: Any
    best_cost: float
    iteration_count: int
    termination_reason: TerminationReason
    total_duration: float
    param: Any = None
    cost: float = float("nan")
    cost_count: int = 0
    gradient_count: int = 0
    hessian_count: int = 0
    final_state: Optional[StateSnapshot] = None
    observer_errors: List[ObserverError] = field(default_factory=list)
    checkpoint_errors: List[CheckpointError] = field(default_factory=list)
    solver_name: str = ""

    @classmethod
    def from_snapshot(
        cls,
        snapshot: StateSnapshot,
        observer_errors: Optional[List[ObserverError]] = None,
        checkpoint_errors: Optional[List[CheckpointError]] = None,
        solver_name: str = "",
    ) -> "OptimizationResult":
        """Build the result from the final state snapshot."""
        return cls(
            best_param=snapshot.best_param,
            best_cost=snapshot.best_cost,
            iteration_count=snapshot.iteration,
            termination_reason=snapshot.termination_reason,
            total_duration=snapshot.elapsed,
            param=snapshot.param,
            cost=snapshot.cost,
            cost_count=snapshot.cost_count,
            gradient_count=snapshot.gradient_count,
            hessian_count=snapshot.hessian_count,
            final_state=snapshot,
            observer_errors=list(observer_errors or []),
            checkpoint_errors=list(checkpoint_errors or []),
            solver_name=solver_name,
        )

    @property
    def failed(self) -> bool:
        """Whether the solver reported a failure."""
        return self.termination_reason.kind is TerminationKind.SOLVER_FAILED

    def summary(self) -> str:
        """Human-readable multi-line summary of the run."""
        lines = [
            "OptimizationResult:",
            f"    solver:             {self.solver_name or '-'}",
            f"    param (best):       {self.best_param!r}",
            f"    cost (best):        {self.best_cost}",
            f"    iterations:         {self.iteration_count}",
            f"    termination:        {self.termination_reason.text()}",
            f"    duration:           {self.total_duration:.4f}s",
            f"    evaluations:        cost={self.cost_count} gradient={self.gradient_count} "
            f"hessian={self.hessian_count}",
        ]
        if self.observer_errors:
            lines.append(f"    observer errors:    {len(self.observer_errors)}")
        if self.checkpoint_errors:
            lines.append(f"    checkpoint errors:  {len(self.checkpoint_errors)}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()
