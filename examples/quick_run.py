"""Quick-start demo for itersolve.

This script minimises a one-dimensional function with Brent's method,
checkpointing along the way, and then resumes the run from the checkpoint:
  Problem → Solver → Executor → Checkpoint → Resume → Summary

Run it with:
    python examples/quick_run.py
"""

from __future__ import annotations

import logging
import math
import os
import sys

# Ensure the repo root is on sys.path so itersolve can be imported without
# installation (useful for quick experiments).
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from itersolve.observers import JsonLinesObserver, LoggingObserver, ObserverMode
from itersolve.optim.base import IterationData, Resumable, Solver, SolverStatus
from itersolve.optim.problem import FunctionProblem
from itersolve.runtime import Executor, ExecutorConfig


class Brent(Resumable, Solver):
    """Brent's method for a bracketed one-dimensional minimum.

    Combines golden-section steps with parabolic interpolation.  The solver
    declares ``TARGET_PRECISION`` once the bracket is narrower than the
    tolerance around the current point.

    Args:
        lower: Left end of the bracket.
        upper: Right end of the bracket.
        eps: Relative tolerance.
        t: Absolute tolerance.
    """

    reports_convergence = True

    def __init__(self, lower: float, upper: float, eps: float = math.sqrt(sys.float_info.epsilon),
                 t: float = 1e-5) -> None:
        self.a, self.b = lower, upper
        self.eps, self.t = eps, t
        self.c = (3.0 - math.sqrt(5.0)) / 2.0
        self.d = self.e = 0.0
        self.x = self.v = self.w = math.nan
        self.fx = self.fv = self.fw = math.nan

    def init(self, problem, state):
        self.x = self.v = self.w = self.a + self.c * (self.b - self.a)
        self.fx = self.fv = self.fw = problem.cost(self.x)
        return IterationData(param=self.x, cost=self.fx)

    def advance(self, problem, state):
        tol = self.eps * abs(self.x) + self.t
        m = (self.a + self.b) / 2.0
        if abs(self.x - m) <= 2.0 * tol - (self.b - self.a) / 2.0:
            return IterationData(param=self.x, cost=self.fx, status=SolverStatus.TARGET_PRECISION)

        # Parabola through (v, fv), (w, fw), (x, fx)
        p = (self.x - self.v) ** 2 * (self.fx - self.fw) - (self.x - self.w) ** 2 * (self.fx - self.fv)
        q = 2.0 * ((self.x - self.w) * (self.fx - self.fv) - (self.x - self.v) * (self.fx - self.fw))
        if q < 0:
            p, q = -p, -q

        if (abs(self.e) <= tol or p < q * (self.a - self.x) or p > q * (self.b - self.x)
                or 2.0 * abs(p) >= q * abs(self.e)):
            # Golden-section step into the larger half
            self.e = (self.b if self.x < m else self.a) - self.x
            self.d = self.c * self.e
        else:
            self.e = self.d
            self.d = p / q
            if self.x + self.d - self.a < 2.0 * tol or self.b - self.x - self.d < 2.0 * tol:
                self.d = math.copysign(tol, m - self.x)

        u = self.x + (self.d if abs(self.d) >= tol else math.copysign(tol, self.d))
        fu = problem.cost(u)
        if fu <= self.fx:
            if u < self.x:
                self.b = self.x
            else:
                self.a = self.x
            self.v, self.fv = self.w, self.fw
            self.w, self.fw = self.x, self.fx
            self.x, self.fx = u, fu
        else:
            if u < self.x:
                self.a = u
            else:
                self.b = u
            if fu <= self.fw or self.w == self.x:
                self.v, self.fv = self.w, self.fw
                self.w, self.fw = u, fu
            elif fu <= self.fv or self.v == self.x or self.v == self.w:
                self.v, self.fv = u, fu
        return IterationData(param=self.x, cost=self.fx)


def main() -> None:
    """Minimise ``exp(-x) - exp(5 - x/2)`` on [-10, 10] in two legs."""
    logging.basicConfig(level=logging.INFO, format="%(name)s %(message)s")

    # 1. Objective; the minimum is at x = 2 log(2 exp(-5)) ~ -8.6137
    problem = FunctionProblem(lambda x: math.exp(-x) - math.exp(5.0 - x / 2.0))

    # 2. First leg: stop after 5 iterations, checkpointing every iteration
    run_dir = "artifacts/quick_demo"
    config = ExecutorConfig(
        name="brent-demo",
        max_iters=5,
        checkpoint_dir=run_dir,
        checkpoint_interval=1,
        metadata={"note": "Quick-start demo run"},
    )
    executor = Executor(problem, Brent(-10.0, 10.0), init_param=math.nan, config=config)
    executor.add_observer(LoggingObserver(), ObserverMode.ALWAYS)
    executor.add_observer(JsonLinesObserver(run_dir=run_dir), ObserverMode.NEW_BEST)
    first = executor.run()
    print(first.summary())

    # 3. Second leg: resume from the checkpoint with a higher ceiling
    resumed = Executor.from_checkpoint(
        executor.checkpointer.path,
        problem,
        Brent(-10.0, 10.0),
        config=ExecutorConfig(name="brent-demo", max_iters=100),
    )
    resumed.add_observer(LoggingObserver(), ObserverMode.every(5))
    result = resumed.run()

    # 4. Print summary
    print()
    print(result.summary())
    print(f"\nObservations written to {run_dir}/observations.jsonl")


if __name__ == "__main__":
    main()
