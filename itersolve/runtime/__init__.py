"""Runtime layer — executor loop, termination policy, lifecycle and config."""

from itersolve.runtime.executor import Executor
from itersolve.runtime.interrupt import AbortSignal
from itersolve.runtime.spec import ExecutorConfig
from itersolve.runtime.state_machine import RunPhase, StateMachine
from itersolve.runtime.termination import TerminationPolicy

__all__ = [
    'AbortSignal',
    'Executor',
    'ExecutorConfig',
    'RunPhase',
    'StateMachine',
    'TerminationPolicy',
]
