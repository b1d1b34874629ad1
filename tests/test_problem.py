"""Unit tests for problems, solvers and the result container."""

from __future__ import annotations

import numpy as np
import pytest

from itersolve.errors import CheckpointVersionMismatch, ObjectiveError, SolverError
from itersolve.optim.base import IterationData, Solver, SolverStatus
from itersolve.optim.problem import CountingProblem, FunctionProblem, Problem
from itersolve.optim.result import OptimizationResult
from itersolve.optim.state import IterationState, TerminationReason

from tests.solvers import MomentumDescent, QuadraticProblem, SequenceSolver


# ---------------------------------------------------------------------------
# Problems
# ---------------------------------------------------------------------------


class TestProblem:
    def test_abstract(self) -> None:
        with pytest.raises(TypeError):
            Problem()  # type: ignore[abstract]

    def test_optional_derivatives(self) -> None:
        problem = FunctionProblem(lambda x: x * x)
        assert problem.cost(3.0) == 9.0
        with pytest.raises(NotImplementedError):
            problem.gradient(3.0)
        with pytest.raises(NotImplementedError):
            problem.hessian(3.0)

    def test_function_problem_derivatives(self) -> None:
        problem = FunctionProblem(lambda x: x * x, gradient=lambda x: 2 * x, hessian=lambda x: 2.0)
        assert problem.gradient(3.0) == 6.0
        assert problem.hessian(3.0) == 2.0


class TestCountingProblem:
    def test_counts(self) -> None:
        problem = CountingProblem(QuadraticProblem())
        x = np.array([0.0, 0.0])
        problem.cost(x)
        problem.cost(x)
        problem.gradient(x)
        problem.hessian(x)
        assert problem.counts() == {"cost_count": 2, "gradient_count": 1, "hessian_count": 1}

    def test_restore_counts(self) -> None:
        problem = CountingProblem(QuadraticProblem())
        problem.restore_counts(5, 4, 3)
        problem.cost(np.zeros(2))
        assert problem.cost_count == 6
        assert problem.hessian_count == 3

    def test_errors_become_objective_errors(self) -> None:
        def cost(x):
            raise FloatingPointError("overflow")

        problem = CountingProblem(FunctionProblem(cost))
        with pytest.raises(ObjectiveError, match="overflow") as info:
            problem.cost(1.0)
        assert isinstance(info.value, SolverError)
        assert isinstance(info.value.__cause__, FloatingPointError)
        assert problem.cost_count == 1

    def test_missing_gradient_is_objective_error(self) -> None:
        problem = CountingProblem(FunctionProblem(lambda x: x))
        with pytest.raises(ObjectiveError, match="gradient"):
            problem.gradient(1.0)


# ---------------------------------------------------------------------------
# Solvers
# ---------------------------------------------------------------------------


class TestSolver:
    def test_abstract(self) -> None:
        with pytest.raises(TypeError):
            Solver()  # type: ignore[abstract]

    def test_defaults(self) -> None:
        solver = SequenceSolver([1.0])
        assert solver.name == "SequenceSolver"
        assert solver.reports_convergence is False
        assert solver.init(None, IterationState.initial(0.0).snapshot()) is None

    def test_iteration_data_defaults(self) -> None:
        data = IterationData()
        assert data.param is None
        assert data.cost is None
        assert data.status is SolverStatus.CONTINUE


class TestResumable:
    def test_snapshot_restore(self) -> None:
        solver = MomentumDescent(step_size=0.3)
        solver.velocity = np.array([1.0, -1.0])
        blob = solver.snapshot()

        fresh = MomentumDescent()
        fresh.restore(blob)
        assert fresh.step_size == 0.3
        np.testing.assert_array_equal(fresh.velocity, [1.0, -1.0])

    def test_version_mismatch(self) -> None:
        blob = MomentumDescent().snapshot()

        class Newer(MomentumDescent):
            snapshot_version = 2

        with pytest.raises(CheckpointVersionMismatch, match="solver snapshot"):
            Newer().restore(blob)


# ---------------------------------------------------------------------------
# OptimizationResult
# ---------------------------------------------------------------------------


class TestOptimizationResult:
    def test_from_snapshot(self) -> None:
        state = IterationState.initial(0.0, max_iters=1)
        state.update(2.0, 0.5)
        state.increment()
        state.termination_reason = TerminationReason.max_iterations()
        state.cost_count = 4

        result = OptimizationResult.from_snapshot(state.snapshot(), solver_name="Demo")
        assert result.best_param == 2.0
        assert result.best_cost == 0.5
        assert result.iteration_count == 1
        assert result.cost_count == 4
        assert result.failed is False
        assert result.final_state.iteration == 1
        assert "Demo" in str(result)

    def test_failed(self) -> None:
        state = IterationState.initial(0.0)
        state.termination_reason = TerminationReason.solver_failed("nan step")
        result = OptimizationResult.from_snapshot(state.snapshot())
        assert result.failed is True
        assert "nan step" in result.summary()
