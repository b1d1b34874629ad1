"""Executor — drives any :class:`~itersolve.optim.base.Solver` to termination.

The :class:`Executor` owns the iteration state and enforces the same loop
semantics for every algorithm::

    ┌─> poll abort signal
    │   solver.advance(problem, snapshot)
    │   fold candidate, update best-so-far (strict improvement only)
    │   iteration += 1
    │   solver-declared status, else TerminationPolicy.evaluate(state)
    │   notify observers (final notification carries the reason)
    │   checkpoint if the interval elapsed
    └── loop until terminated

Usage::

    config = ExecutorConfig(max_iters=100, target_cost=1e-8)
    executor = Executor(problem, solver, init_param=x0, config=config)
    executor.add_observer(LoggingObserver(), ObserverMode.every(10))
    result = executor.run()
    print(result.summary())

    # Later, after an interruption
    executor = Executor.from_checkpoint('checkpoints/checkpoint.ckpt', problem, solver)
    result = executor.run()
"""

from __future__ import annotations

import logging
import time
from contextlib import nullcontext
from typing import Any, List, Optional, Tuple

from itersolve.checkpoint.checkpointer import Checkpointer
from itersolve.errors import (
    CheckpointError,
    CheckpointVersionMismatch,
    ConfigError,
    ObjectiveError,
    SolverError,
)
from itersolve.observers.interface import Observer, ObserverMode
from itersolve.observers.registry import ObserverRegistry
from itersolve.optim.base import IterationData, Resumable, Solver, SolverStatus
from itersolve.optim.problem import CountingProblem, Problem
from itersolve.optim.result import OptimizationResult
from itersolve.optim.state import IterationState, StateSnapshot, TerminationReason, thaw
from itersolve.runtime.interrupt import AbortSignal
from itersolve.runtime.spec import ExecutorConfig
from itersolve.runtime.state_machine import RunPhase, StateMachine
from itersolve.runtime.termination import TerminationPolicy

logger = logging.getLogger(__name__)


class Executor:
    """Orchestrates a single optimisation run.

    Args:
        problem: Objective adapter.
        solver: Algorithm implementing :class:`Solver`.
        init_param: Starting parameter (ignored when *state* is given).
        config: Run configuration; defaults to :class:`ExecutorConfig`.
        checkpointer: Explicit checkpointer; built from *config* if omitted.
        abort_signal: Shared abort flag; a private one is created if omitted.
        state: Pre-existing state to continue from (used by
            :meth:`from_checkpoint`).

    Raises:
        ConfigError: If *config* is invalid or disagrees with *state*.
    """

    def __init__(
        self,
        problem: Problem,
        solver: Solver,
        init_param: Any = None,
        config: Optional[ExecutorConfig] = None,
        checkpointer: Optional[Checkpointer] = None,
        abort_signal: Optional[AbortSignal] = None,
        state: Optional[IterationState] = None,
    ) -> None:
        self.config = (config or ExecutorConfig()).validate()
        self.problem = problem if isinstance(problem, CountingProblem) else CountingProblem(problem)
        self.solver = solver
        self.policy = TerminationPolicy.from_config(self.config)
        self.observers = ObserverRegistry(fatal=self.config.fatal_observer_errors)
        self.abort_signal = abort_signal or AbortSignal()
        self.checkpoint_errors: List[CheckpointError] = []

        if checkpointer is None and self.config.checkpoint_dir and self.config.checkpoint_interval > 0:
            checkpointer = Checkpointer(
                self.config.checkpoint_dir,
                interval=self.config.checkpoint_interval,
                name=self.config.checkpoint_name,
            )
        self.checkpointer = checkpointer

        self._resumed = state is not None
        if state is None:
            state = IterationState.initial(
                init_param, max_iters=self.config.max_iters, maximize=self.config.maximize
            )
        else:
            if state.maximize != self.config.maximize:
                raise ConfigError('Cannot change the optimisation direction of a resumed run')
            state.max_iters = self.config.max_iters
            state.termination_reason = TerminationReason.unterminated()
            self.problem.restore_counts(state.cost_count, state.gradient_count, state.hessian_count)
        self._state = state
        self._sm = StateMachine()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def add_observer(self, observer: Observer, mode: Optional[ObserverMode] = None) -> 'Executor':
        """Register *observer*; observers are notified in registration order."""
        self.observers.add(observer, mode)
        return self

    def set_checkpointer(self, checkpointer: Optional[Checkpointer]) -> 'Executor':
        """Replace (or with *None* disable) the checkpointer."""
        self.checkpointer = checkpointer
        return self

    def abort(self) -> None:
        """Ask the run to stop at the next iteration boundary."""
        self.abort_signal.set()

    @property
    def state(self) -> StateSnapshot:
        """Read-only snapshot of the current state."""
        return self._state.snapshot()

    @property
    def phase(self) -> RunPhase:
        """Current lifecycle phase of the executor."""
        return self._sm.state

    # ------------------------------------------------------------------
    # Resume
    # ------------------------------------------------------------------

    @classmethod
    def from_checkpoint(
        cls,
        path: str,
        problem: Problem,
        solver: Solver,
        config: Optional[ExecutorConfig] = None,
        **kwargs: Any,
    ) -> 'Executor':
        """Rebuild an executor from a checkpoint artifact.

        Iteration numbering continues from the saved iteration.  The solver
        is restored from the stored snapshot and is *not* re-initialised.

        Args:
            path: Checkpoint artifact.
            problem: Objective adapter.
            solver: Fresh solver instance of the type that wrote the checkpoint.
            config: Overrides the configuration stored in the checkpoint.
            **kwargs: Forwarded to the constructor.

        Raises:
            CheckpointVersionMismatch: If the artifact or solver snapshot
                has an incompatible version.
            CheckpointError: If the artifact cannot be read or the solver
                cannot take the stored snapshot.
        """
        checkpoint = Checkpointer.load(path)
        if config is None:
            config = ExecutorConfig.from_dict(checkpoint.config)

        if checkpoint.solver_name and checkpoint.solver_name != solver.name:
            logger.warning(
                "Checkpoint was written by solver '%s', resuming with '%s'",
                checkpoint.solver_name,
                solver.name,
            )
        if checkpoint.solver_blob is not None:
            if not isinstance(solver, Resumable):
                raise CheckpointError(
                    f"Checkpoint holds solver state but {solver.name} is not Resumable"
                )
            if checkpoint.solver_version != solver.snapshot_version:
                raise CheckpointVersionMismatch(
                    solver.snapshot_version, checkpoint.solver_version, what='solver snapshot'
                )
            solver.restore(checkpoint.solver_blob)

        logger.info('Resuming from %s at iteration %d', path, checkpoint.iteration)
        return cls(problem, solver, config=config, state=checkpoint.to_state(), **kwargs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> OptimizationResult:
        """Run the solver until a termination condition fires.

        Returns:
            The :class:`OptimizationResult`, on every termination path.

        Raises:
            ConfigError: If no termination condition can ever fire, or the
                executor has already run.
            ObserverError: Only with ``fatal_observer_errors``.
            CheckpointError: Only with ``fatal_checkpoint_errors``.
        """
        if not self.policy.can_terminate(self.solver):
            raise ConfigError(
                f'No termination condition can fire: set max_iters, target_cost, '
                f'cost_tolerance or no_improvement_window, or use a solver that '
                f'reports convergence ({self.solver.name} does not)'
            )
        self._sm.transition(RunPhase.RUNNING)

        state = self._state
        logger.info(
            "Run '%s' starting with %s at iteration %d (max_iters=%s)",
            self.config.name,
            self.solver.name,
            state.iteration,
            state.max_iters,
        )

        interrupts = self.abort_signal.handle_sigint() if self.config.handle_interrupts else nullcontext()
        started = time.perf_counter()
        base_elapsed = state.elapsed
        completed = False
        try:
            with interrupts:
                self._loop(started, base_elapsed)
            completed = True
        finally:
            state.elapsed = base_elapsed + (time.perf_counter() - started)
            self._sm.transition(RunPhase.TERMINATED)
            # Teardown failures must not mask an error already propagating
            self.observers.close(reraise=completed)

        final = state.snapshot()
        logger.info(
            "Run '%s' terminated after %d iterations: %s (best cost %s)",
            self.config.name,
            final.iteration,
            final.termination_reason.text(),
            final.best_cost,
        )
        return OptimizationResult.from_snapshot(
            final,
            observer_errors=self.observers.errors,
            checkpoint_errors=self.checkpoint_errors,
            solver_name=self.solver.name,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _loop(self, started: float, base_elapsed: float) -> None:
        state = self._state

        # Limit already reached (max_iters == 0, or resuming past the ceiling)
        if state.max_iters is not None and state.iteration >= state.max_iters:
            self._finish(TerminationReason.max_iterations())
            return

        if not self._resumed and not self._initialise():
            return

        while True:
            if self.abort_signal.is_set:
                logger.info('Abort requested; stopping at iteration %d', state.iteration)
                self._finish(TerminationReason.user_aborted(), checkpoint=True)
                return

            completed = self._iterate()
            state.elapsed = base_elapsed + (time.perf_counter() - started)
            if not completed:
                self._finish(state.termination_reason)
                return

            snapshot = state.snapshot()
            self.observers.notify(snapshot, is_final=snapshot.terminated)
            self._checkpoint(snapshot)
            if snapshot.terminated:
                return

    def _initialise(self) -> bool:
        """Run :meth:`Solver.init`; returns ``False`` if the solver failed."""
        try:
            data = self.solver.init(self.problem, self._state.snapshot())
            if data is not None:
                self._fold(data)
        except Exception as exc:
            self._fail(exc, during='init')
            self._finish(self._state.termination_reason)
            return False
        self._state.improved = False
        return True

    def _iterate(self) -> bool:
        """Advance the solver by one iteration.

        Returns:
            ``True`` if the iteration completed, ``False`` if the solver
            failed (the state then carries ``SOLVER_FAILED``).
        """
        state = self._state
        t0 = time.perf_counter()
        try:
            data = self.solver.advance(self.problem, state.snapshot())
            self._fold(data)
        except Exception as exc:
            self._fail(exc, during='iteration %d' % (state.iteration + 1))
            return False

        state.increment()
        state.last_iter_duration = time.perf_counter() - t0

        if data.status is SolverStatus.CONVERGED:
            reason: Optional[TerminationReason] = TerminationReason.solver_converged()
        elif data.status is SolverStatus.TARGET_PRECISION:
            reason = TerminationReason.target_precision()
        else:
            reason = self.policy.evaluate(state)
        if reason is not None:
            state.termination_reason = reason

        logger.debug(
            'Iter %d: cost=%s best=%s%s',
            state.iteration,
            state.cost,
            state.best_cost,
            ' (new best)' if state.improved else '',
        )
        return True

    def _fold(self, data: IterationData) -> None:
        """Merge solver output into the state (no iteration is counted)."""
        state = self._state
        if data.status is SolverStatus.FAILED:
            raise SolverError(data.error or f'{self.solver.name} reported a failure')

        param = state.param if data.param is None else thaw(data.param)
        cost = data.cost
        if cost is None:
            cost = self.problem.cost(param)
        try:
            cost = float(cost)
        except (TypeError, ValueError) as exc:
            raise ObjectiveError(f'Cost is not a scalar: {cost!r}') from exc

        state.update(param, cost, gradient=data.gradient, hessian=data.hessian)
        self._sync_counts()

    def _fail(self, exc: Exception, during: str) -> None:
        self._sync_counts()
        if isinstance(exc, SolverError):
            detail = str(exc)
        else:
            detail = f'{type(exc).__name__}: {exc}'
        logger.warning('%s failed during %s: %s', self.solver.name, during, detail,
                       exc_info=not isinstance(exc, SolverError))
        self._state.termination_reason = TerminationReason.solver_failed(detail)

    def _finish(self, reason: TerminationReason, checkpoint: bool = False) -> None:
        """Record *reason* and deliver the final notification."""
        self._state.termination_reason = reason
        snapshot = self._state.snapshot()
        self.observers.notify(snapshot, is_final=True)
        if checkpoint:
            self._checkpoint(snapshot, force=True)

    def _sync_counts(self) -> None:
        for key, value in self.problem.counts().items():
            setattr(self._state, key, value)

    def _solver_snapshot(self) -> Tuple[Optional[bytes], Optional[int]]:
        if not isinstance(self.solver, Resumable):
            return None, None
        try:
            return self.solver.snapshot(), self.solver.snapshot_version
        except Exception as exc:
            raise CheckpointError(f'{self.solver.name} could not snapshot its state: {exc}') from exc

    def _checkpoint(self, snapshot: StateSnapshot, force: bool = False) -> None:
        """Checkpoint after notification when due (or always if *force*)."""
        if self.checkpointer is None:
            return
        if not force and not self.checkpointer.due(snapshot.iteration):
            return
        try:
            blob, version = self._solver_snapshot()
            self.checkpointer.save(
                snapshot,
                solver_blob=blob,
                solver_name=self.solver.name,
                solver_version=version,
                config=self.config.to_dict(),
            )
        except CheckpointError as exc:
            if self.config.fatal_checkpoint_errors:
                raise
            self.checkpoint_errors.append(exc)
            logger.warning('Checkpoint failed at iteration %d: %s', snapshot.iteration, exc)
