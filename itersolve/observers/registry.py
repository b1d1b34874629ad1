"""ObserverRegistry — ordered, failure-isolated observer dispatch.

Observers are notified in registration order so interleaved output (log
lines, progress bars, files) is reproducible.  A failing observer never
stops later observers or the run; its error is collected and returned to
the caller with the result.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Set, Tuple

from itersolve.errors import ObserverError
from itersolve.observers.interface import Observer, ObserverMode
from itersolve.optim.state import StateSnapshot

logger = logging.getLogger(__name__)


class ObserverRegistry:
    """Holds observers and dispatches snapshots to them.

    Attributes:
        fatal: Re-raise the first observer failure instead of collecting it.
        errors: Failures collected so far.
    """

    def __init__(self, fatal: bool = False) -> None:
        self.fatal = fatal
        self.errors: List[ObserverError] = []
        self._observers: List[Tuple[Observer, ObserverMode]] = []
        self._reported: Set[int] = set()

    def __len__(self) -> int:
        return len(self._observers)

    def add(self, observer: Observer, mode: Optional[ObserverMode] = None) -> None:
        """Register *observer* (called after all previously added ones)."""
        self._observers.append((observer, mode or ObserverMode.ALWAYS))

    def notify(self, snapshot: StateSnapshot, is_final: bool = False) -> None:
        """Dispatch *snapshot* to every observer whose mode accepts it.

        Raises:
            ObserverError: Only in fatal mode.
        """
        for index, (observer, mode) in enumerate(self._observers):
            if not mode.should_notify(snapshot, is_final):
                continue
            try:
                observer.observe(snapshot, is_final)
            except Exception as exc:
                self._record(index, observer, snapshot.iteration, exc)

    def close(self, reraise: bool = True) -> None:
        """Call :meth:`Observer.finish` on every observer.

        Args:
            reraise: In fatal mode, raise teardown failures.  Pass ``False``
                while another error is already propagating so that error
                is not replaced; failures are then collected.
        """
        for index, (observer, _) in enumerate(self._observers):
            try:
                observer.finish()
            except Exception as exc:
                self._record(index, observer, -1, exc, fatal=self.fatal and reraise)

    def _record(
        self, index: int, observer: Observer, iteration: int, exc: Exception, fatal: Optional[bool] = None
    ) -> None:
        error = ObserverError(observer.name, iteration, exc)
        if fatal is None:
            fatal = self.fatal
        if fatal:
            raise error from exc
        self.errors.append(error)
        if index not in self._reported:
            self._reported.add(index)
            logger.warning("%s (further failures of this observer are collected silently)", error)
        else:
            logger.debug("%s", error)
