"""WandbObserver — stream run progress to Weights & Biases.

``wandb`` is an optional dependency (``pip install itersolve[wandb]``).  An
already-initialised run object can be passed in instead, in which case the
``wandb`` package is never imported by this module.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from itersolve.errors import ConfigError
from itersolve.observers.interface import Observer
from itersolve.optim.state import StateSnapshot


class WandbObserver(Observer):
    """Observer backed by the WandB SDK.

    Attributes:
        project: WandB project name.
        entity: WandB team / user entity (optional).
    """

    def __init__(
        self,
        project: str = "itersolve",
        entity: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
        run: Any = None,
    ) -> None:
        """Initialise a WandB run, or attach to *run*.

        Args:
            project: WandB project name.
            entity: WandB entity (team or user).
            config: Run config dict logged as run metadata.
            run: Existing run object exposing ``log`` / ``summary`` /
                ``finish``.

        Raises:
            ConfigError: If *run* is not given and ``wandb`` is not installed.
        """
        self.project = project
        self.entity = entity
        self._owns_run = run is None
        if run is None:
            try:
                import wandb
            except ImportError as exc:
                raise ConfigError(
                    "WandbObserver requires wandb. Install with: pip install itersolve[wandb]"
                ) from exc
            run = wandb.init(project=project, entity=entity, config=config or {})
        self._run = run

    def observe(self, snapshot: StateSnapshot, is_final: bool) -> None:
        """Log the scalar metrics of *snapshot* at its iteration step."""
        metrics = snapshot.metrics()
        step = metrics.pop("iteration")
        self._run.log(metrics, step=step)
        if is_final:
            self._run.summary["termination_reason"] = snapshot.termination_reason.kind.value
            self._run.summary["best_cost"] = float(snapshot.best_cost)
            self._run.summary["iterations"] = snapshot.iteration

    def finish(self) -> None:
        """Finish the WandB run if this observer created it."""
        if self._owns_run:
            self._run.finish()
