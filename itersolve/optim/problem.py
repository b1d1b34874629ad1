"""Objective adapters — what a solver evaluates.

A :class:`Problem` maps a candidate parameter to a scalar cost and, when the
algorithm needs them, to a gradient and a Hessian.  The executor hands
solvers a :class:`CountingProblem` wrapper so evaluation counts end up in
the iteration state and every objective failure surfaces as an
:class:`~itersolve.errors.ObjectiveError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from itersolve.errors import ObjectiveError


class Problem(ABC):
    """Abstract objective function.

    Subclasses must implement :meth:`cost`.  :meth:`gradient` and
    :meth:`hessian` are optional and raise :class:`NotImplementedError`
    unless overridden.
    """

    @abstractmethod
    def cost(self, param: Any) -> float:
        """Evaluate the objective at *param*.

        Args:
            param: Candidate parameter value.

        Returns:
            Scalar cost (lower is better unless the run maximizes).
        """

    def gradient(self, param: Any) -> Any:
        """Evaluate the gradient at *param*."""
        raise NotImplementedError(f"{type(self).__name__} does not provide a gradient")

    def hessian(self, param: Any) -> Any:
        """Evaluate the Hessian at *param*."""
        raise NotImplementedError(f"{type(self).__name__} does not provide a Hessian")


class FunctionProblem(Problem):
    """Problem built from plain callables.

    Example::

        problem = FunctionProblem(lambda x: (x - 3.0) ** 2,
                                  gradient=lambda x: 2.0 * (x - 3.0))
    """

    def __init__(
        self,
        cost: Callable[[Any], float],
        gradient: Optional[Callable[[Any], Any]] = None,
        hessian: Optional[Callable[[Any], Any]] = None,
    ) -> None:
        self._cost = cost
        self._gradient = gradient
        self._hessian = hessian

    def cost(self, param: Any) -> float:
        return self._cost(param)

    def gradient(self, param: Any) -> Any:
        if self._gradient is None:
            return super().gradient(param)
        return self._gradient(param)

    def hessian(self, param: Any) -> Any:
        if self._hessian is None:
            return super().hessian(param)
        return self._hessian(param)


class CountingProblem(Problem):
    """Wrap a :class:`Problem`, counting evaluations and normalising errors.

    Any exception raised by the wrapped problem is re-raised as
    :class:`ObjectiveError` (chained to the original), so the executor can
    classify it as a solver failure.

    Attributes:
        problem: The wrapped objective.
        cost_count: Number of :meth:`cost` calls.
        gradient_count: Number of :meth:`gradient` calls.
        hessian_count: Number of :meth:`hessian` calls.
    """

    def __init__(self, problem: Problem) -> None:
        self.problem = problem
        self.cost_count = 0
        self.gradient_count = 0
        self.hessian_count = 0

    def _call(self, kind: str, fn: Callable[[Any], Any], param: Any) -> Any:
        try:
            return fn(param)
        except ObjectiveError:
            raise
        except Exception as exc:
            raise ObjectiveError(f"{kind} evaluation failed: {exc}") from exc

    def cost(self, param: Any) -> float:
        self.cost_count += 1
        return self._call("cost", self.problem.cost, param)

    def gradient(self, param: Any) -> Any:
        self.gradient_count += 1
        return self._call("gradient", self.problem.gradient, param)

    def hessian(self, param: Any) -> Any:
        self.hessian_count += 1
        return self._call("hessian", self.problem.hessian, param)

    def counts(self) -> Dict[str, int]:
        """Return the evaluation counters as a dict."""
        return {
            "cost_count": self.cost_count,
            "gradient_count": self.gradient_count,
            "hessian_count": self.hessian_count,
        }

    def restore_counts(
        self, cost_count: int = 0, gradient_count: int = 0, hessian_count: int = 0
    ) -> None:
        """Seed the counters, e.g. when resuming from a checkpoint."""
        self.cost_count = cost_count
        self.gradient_count = gradient_count
        self.hessian_count = hessian_count
