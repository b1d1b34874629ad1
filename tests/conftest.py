"""Shared test fixtures for the itersolve test suite."""

from __future__ import annotations

import numpy as np
import pytest

from itersolve.runtime.spec import ExecutorConfig

from tests.solvers import MomentumDescent, QuadraticProblem, RecordingObserver, UnitProblem


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quadratic() -> QuadraticProblem:
    """A 2-D quadratic bowl centred at (1, -2)."""
    return QuadraticProblem(center=(1.0, -2.0))


@pytest.fixture
def unit_problem() -> UnitProblem:
    """Objective for solvers that report their own costs."""
    return UnitProblem()


@pytest.fixture
def momentum() -> MomentumDescent:
    """A resumable momentum gradient-descent solver."""
    return MomentumDescent(step_size=0.1, beta=0.5)


@pytest.fixture
def x0() -> np.ndarray:
    """Starting point away from the quadratic's minimum."""
    return np.array([4.0, 3.0])


@pytest.fixture
def recorder() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def bounded_config() -> ExecutorConfig:
    """Config with only an iteration ceiling."""
    return ExecutorConfig(name='test', max_iters=10)
