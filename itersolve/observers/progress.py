"""ProgressObserver — a ``tqdm`` progress bar for interactive runs."""

from __future__ import annotations

from typing import Any, Optional

from tqdm import tqdm

from itersolve.observers.interface import Observer
from itersolve.optim.state import StateSnapshot


class ProgressObserver(Observer):
    """Advance a progress bar on every notification.

    The bar total is taken from ``max_iters`` of the first snapshot (unknown
    totals show a plain counter).  The postfix carries the best cost.

    Args:
        desc: Bar description.
        file: Stream to draw on (``sys.stderr`` by default).
        **tqdm_kwargs: Extra keyword arguments forwarded to :class:`tqdm`.
    """

    def __init__(self, desc: str = 'optimizing', file: Optional[Any] = None, **tqdm_kwargs: Any) -> None:
        self.desc = desc
        self.file = file
        self.tqdm_kwargs = tqdm_kwargs
        self._bar: Optional[tqdm] = None

    def _ensure_bar(self, snapshot: StateSnapshot) -> tqdm:
        if self._bar is None:
            self._bar = tqdm(
                total=snapshot.max_iters,
                initial=max(snapshot.iteration - 1, 0),
                desc=self.desc,
                file=self.file,
                **self.tqdm_kwargs,
            )
        return self._bar

    def observe(self, snapshot: StateSnapshot, is_final: bool) -> None:
        bar = self._ensure_bar(snapshot)
        if snapshot.iteration > bar.n:
            bar.update(snapshot.iteration - bar.n)
        bar.set_postfix(best_cost=f'{snapshot.best_cost:.6g}', refresh=False)
        if is_final:
            bar.set_description(f'{self.desc} [{snapshot.termination_reason.kind.value}]')

    @property
    def position(self) -> int:
        """Iterations shown on the bar so far."""
        return 0 if self._bar is None else int(self._bar.n)

    def finish(self) -> None:
        if self._bar is not None:
            self._bar.close()
