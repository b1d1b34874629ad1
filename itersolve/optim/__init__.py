"""Solver-facing data model — problems, solvers, iteration state and results."""

from itersolve.optim.base import IterationData, Resumable, Solver, SolverStatus
from itersolve.optim.problem import CountingProblem, FunctionProblem, Problem
from itersolve.optim.result import OptimizationResult
from itersolve.optim.state import (
    IterationState,
    StateSnapshot,
    TerminationKind,
    TerminationReason,
)

__all__ = [
    "CountingProblem",
    "FunctionProblem",
    "IterationData",
    "IterationState",
    "OptimizationResult",
    "Problem",
    "Resumable",
    "Solver",
    "SolverStatus",
    "StateSnapshot",
    "TerminationKind",
    "TerminationReason",
]
