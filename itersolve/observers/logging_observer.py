"""LoggingObserver — progress lines through the standard ``logging`` module."""

from __future__ import annotations

import logging
from typing import Optional

from itersolve.observers.interface import Observer
from itersolve.optim.state import StateSnapshot


class LoggingObserver(Observer):
    """Emit one log record per notification.

    Intermediate iterations are logged at *level*; the final notification is
    always logged at ``INFO`` or above together with the termination reason.

    Args:
        level: Log level for intermediate iterations.
        logger_name: Logger to write to (defaults to this module's logger).
        show_params: Include the current and best parameter in the message.
    """

    def __init__(
        self,
        level: int = logging.INFO,
        logger_name: Optional[str] = None,
        show_params: bool = False,
    ) -> None:
        self.level = level
        self.show_params = show_params
        self._logger = logging.getLogger(logger_name or __name__)

    def observe(self, snapshot: StateSnapshot, is_final: bool) -> None:
        if is_final:
            self._logger.log(
                max(self.level, logging.INFO),
                'Terminated after %d iterations (%s) | best cost: %.6g | %.3fs',
                snapshot.iteration,
                snapshot.termination_reason.text(),
                snapshot.best_cost,
                snapshot.elapsed,
            )
            return

        self._logger.log(
            self.level,
            'Iter %d | cost: %.6g | best: %.6g%s | %.4fs%s',
            snapshot.iteration,
            snapshot.cost,
            snapshot.best_cost,
            ' *' if snapshot.improved else '',
            snapshot.last_iter_duration,
            (f' | param: {snapshot.param!r} | best param: {snapshot.best_param!r}'
             if self.show_params else ''),
        )
