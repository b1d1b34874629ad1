"""Observer — abstract base for progress subscribers.

Every observer backend (logging, JSON lines, progress bar, WandB, etc.)
implements this interface so the executor can report progress uniformly.
Observers receive read-only :class:`~itersolve.optim.state.StateSnapshot`
objects and can never mutate the live run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar

from itersolve.optim.state import StateSnapshot


class Observer(ABC):
    """Abstract observer interface.

    Subclasses must implement :meth:`observe`.
    """

    @property
    def name(self) -> str:
        """Name used when reporting failures of this observer."""
        return type(self).__name__

    @abstractmethod
    def observe(self, snapshot: StateSnapshot, is_final: bool) -> None:
        """Receive the state after an iteration.

        Args:
            snapshot: Immutable view of the run state.
            is_final: ``True`` for the single notification that carries the
                termination reason.
        """

    def finish(self) -> None:
        """Finalise the observer after the run.

        The default implementation is a no-op.  Override when the backend
        requires explicit teardown (e.g. closing a progress bar).
        """


@dataclass(frozen=True)
class ObserverMode:
    """When an observer is notified of intermediate iterations.

    Use the ``ALWAYS``, ``NEVER`` and ``NEW_BEST`` constants or
    :meth:`every`.  Apart from ``NEVER``, every mode also receives the final
    notification.

    Attributes:
        kind: ``"always"``, ``"never"``, ``"every"`` or ``"new_best"``.
        interval: Notification period for ``"every"``.
    """

    kind: str = "always"
    interval: int = 1

    ALWAYS: ClassVar["ObserverMode"]
    NEVER: ClassVar["ObserverMode"]
    NEW_BEST: ClassVar["ObserverMode"]

    def __post_init__(self) -> None:
        if self.kind not in ("always", "never", "every", "new_best"):
            raise ValueError(f"Unknown observer mode '{self.kind}'")
        if self.interval <= 0:
            raise ValueError("Observer interval must be positive")

    @classmethod
    def every(cls, interval: int) -> "ObserverMode":
        """Notify every *interval* iterations."""
        return cls("every", interval)

    def should_notify(self, snapshot: StateSnapshot, is_final: bool) -> bool:
        if self.kind == "never":
            return False
        if is_final or self.kind == "always":
            return True
        if self.kind == "every":
            return snapshot.iteration % self.interval == 0
        return snapshot.improved


ObserverMode.ALWAYS = ObserverMode("always")
ObserverMode.NEVER = ObserverMode("never")
ObserverMode.NEW_BEST = ObserverMode("new_best")
