"""ExecutorConfig — serialisable run configuration.

An :class:`ExecutorConfig` captures every knob of a run: termination
limits, optimisation direction, checkpointing, and error policy.  It is
persisted as YAML for reproducibility and embedded in every checkpoint so a
run can be resumed with the settings it was started with.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Optional

import yaml

from itersolve.errors import ConfigError


@dataclass
class ExecutorConfig:
    """Configuration for a single optimisation run.

    Attributes:
        name: Human-readable run identifier.
        max_iters: Iteration ceiling; ``None`` means unbounded.
        target_cost: Stop once the best cost reaches this value.
        target_cost_tolerance: Slack around *target_cost*.
        cost_tolerance: Stop once consecutive costs differ by at most this.
        no_improvement_window: Stop after this many iterations without a
            strictly better cost.
        maximize: Treat higher costs as better.
        checkpoint_dir: Directory for checkpoints (``None`` disables them).
        checkpoint_interval: Save every *n* iterations (0 disables).
        checkpoint_name: Base file name of the checkpoint artifact.
        fatal_observer_errors: Propagate observer failures instead of
            collecting them.
        fatal_checkpoint_errors: Propagate checkpoint write failures.
        handle_interrupts: Turn SIGINT into a graceful ``USER_ABORTED``.
        metadata: Free-form metadata (problem name, notes, tags, etc.).
    """

    name: str = "run"
    max_iters: Optional[int] = None
    target_cost: Optional[float] = None
    target_cost_tolerance: float = 0.0
    cost_tolerance: Optional[float] = None
    no_improvement_window: Optional[int] = None
    maximize: bool = False
    checkpoint_dir: Optional[str] = None
    checkpoint_interval: int = 0
    checkpoint_name: str = "checkpoint"
    fatal_observer_errors: bool = False
    fatal_checkpoint_errors: bool = False
    handle_interrupts: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> "ExecutorConfig":
        """Check value ranges.

        Returns:
            ``self`` for chaining.

        Raises:
            ConfigError: On any out-of-range value.
        """
        from itersolve.runtime.termination import TerminationPolicy

        # Limits are range-checked by the policy itself
        TerminationPolicy.from_config(self)
        if self.checkpoint_interval < 0:
            raise ConfigError("checkpoint_interval must be >= 0")
        if self.checkpoint_interval > 0 and not self.checkpoint_dir:
            raise ConfigError("checkpoint_interval is set but checkpoint_dir is missing")
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert the config to a plain dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ExecutorConfig":
        """Build a config from a mapping, rejecting unknown keys.

        Raises:
            ConfigError: If *data* contains unknown keys.
        """
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown executor config keys: {unknown}")
        return cls(**data)

    def to_yaml(self, path: str) -> None:
        """Write the config to a YAML file."""
        with open(path, "w", encoding="utf-8") as fh:
            yaml.dump(self.to_dict(), fh, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(cls, path: str) -> "ExecutorConfig":
        """Load an :class:`ExecutorConfig` from a YAML file."""
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        return cls.from_dict(data)
