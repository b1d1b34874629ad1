"""itersolve — an executor for iterative numerical optimisation.

Plug in a :class:`~itersolve.optim.problem.Problem` and a
:class:`~itersolve.optim.base.Solver`; the
:class:`~itersolve.runtime.executor.Executor` owns the loop, best-so-far
tracking, termination, observers and checkpoint/resume.
"""

__version__ = "0.3.0"

from itersolve.errors import (
    CheckpointError,
    CheckpointVersionMismatch,
    ConfigError,
    ExecutionError,
    ObjectiveError,
    ObserverError,
    SolverError,
)
from itersolve.optim import (
    FunctionProblem,
    IterationData,
    OptimizationResult,
    Problem,
    Resumable,
    Solver,
    SolverStatus,
    TerminationKind,
    TerminationReason,
)
from itersolve.runtime import AbortSignal, Executor, ExecutorConfig

__all__ = [
    "AbortSignal",
    "CheckpointError",
    "CheckpointVersionMismatch",
    "ConfigError",
    "ExecutionError",
    "Executor",
    "ExecutorConfig",
    "FunctionProblem",
    "IterationData",
    "ObjectiveError",
    "ObserverError",
    "OptimizationResult",
    "Problem",
    "Resumable",
    "Solver",
    "SolverError",
    "SolverStatus",
    "TerminationKind",
    "TerminationReason",
    "__version__",
]
