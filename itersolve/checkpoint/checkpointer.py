"""Checkpointer — periodic, atomic persistence of a run for later resume.

A checkpoint artifact is a pickled envelope::

    {
        "format": "itersolve-checkpoint",
        "version": CHECKPOINT_VERSION,
        "digest": <sha256 of payload>,
        "payload": <pickled dict with state, config and solver snapshot>,
    }

The envelope is checked before the payload is trusted, so an artifact from
an incompatible release fails with
:class:`~itersolve.errors.CheckpointVersionMismatch` and a damaged one with
:class:`~itersolve.errors.CheckpointError`.  Files are published with a
write-to-temp-then-rename so an interrupted save never leaves a readable
partial artifact behind.
"""

from __future__ import annotations

import logging
import os
import pickle
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from itersolve.errors import CheckpointError, CheckpointVersionMismatch
from itersolve.optim.state import IterationState, StateSnapshot
from itersolve.utils.helpers import atomic_write_bytes, bytes_sha256, timestamp_id

logger = logging.getLogger(__name__)

CHECKPOINT_FORMAT = "itersolve-checkpoint"
CHECKPOINT_VERSION = 1
CHECKPOINT_SUFFIX = ".ckpt"


@dataclass
class Checkpoint:
    """Contents of a loaded checkpoint artifact.

    Attributes:
        state: Field mapping of the saved :class:`IterationState`.
        config: Executor configuration the run was started with.
        solver_name: Name of the solver that wrote the snapshot.
        solver_version: Snapshot version reported by the solver.
        solver_blob: Opaque solver-internal state (``None`` if the solver
            is not resumable).
        created: Timestamp id of the save.
    """

    state: Dict[str, Any]
    config: Dict[str, Any] = field(default_factory=dict)
    solver_name: Optional[str] = None
    solver_version: Optional[int] = None
    solver_blob: Optional[bytes] = None
    created: str = ""

    @property
    def iteration(self) -> int:
        return int(self.state.get("iteration", 0))

    def to_state(self) -> IterationState:
        """Rebuild the :class:`IterationState` stored in this checkpoint."""
        return IterationState.from_dict(self.state)


class Checkpointer:
    """Saves run state every *interval* iterations into *directory*.

    Attributes:
        directory: Target directory (created on first save).
        interval: Save period in iterations; ``0`` disables periodic saves.
        name: Base file name of the artifact.
    """

    def __init__(self, directory: str, interval: int = 1, name: str = "checkpoint") -> None:
        if interval < 0:
            raise ValueError("Checkpoint interval must be >= 0")
        self.directory = directory
        self.interval = interval
        self.name = name

    @property
    def path(self) -> str:
        """Location of the checkpoint artifact."""
        return os.path.join(self.directory, self.name + CHECKPOINT_SUFFIX)

    def due(self, iteration: int) -> bool:
        """Whether a periodic save is due after *iteration*."""
        return self.interval > 0 and iteration > 0 and iteration % self.interval == 0

    def maybe_save(
        self,
        iteration: int,
        snapshot: StateSnapshot,
        solver_blob: Optional[bytes] = None,
        solver_name: Optional[str] = None,
        solver_version: Optional[int] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Save if the interval has elapsed.

        Returns:
            ``True`` if a checkpoint was written.
        """
        if not self.due(iteration):
            return False
        self.save(snapshot, solver_blob, solver_name, solver_version, config)
        return True

    def save(
        self,
        snapshot: StateSnapshot,
        solver_blob: Optional[bytes] = None,
        solver_name: Optional[str] = None,
        solver_version: Optional[int] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Write a checkpoint unconditionally.

        Returns:
            Path of the written artifact.

        Raises:
            CheckpointError: If the state cannot be serialised or written.
        """
        state = IterationState.from_snapshot(snapshot)
        payload_data = {
            "state": state.to_dict(),
            "config": dict(config or {}),
            "solver_name": solver_name,
            "solver_version": solver_version,
            "solver_blob": solver_blob,
            "created": timestamp_id(),
        }
        try:
            payload = pickle.dumps(payload_data, protocol=pickle.HIGHEST_PROTOCOL)
            envelope = pickle.dumps(
                {
                    "format": CHECKPOINT_FORMAT,
                    "version": CHECKPOINT_VERSION,
                    "digest": bytes_sha256(payload),
                    "payload": payload,
                },
                protocol=pickle.HIGHEST_PROTOCOL,
            )
            atomic_write_bytes(self.path, envelope)
        except (OSError, pickle.PicklingError, TypeError, AttributeError) as exc:
            raise CheckpointError(f"Could not write checkpoint to {self.path}: {exc}") from exc

        logger.info('Checkpoint saved at iteration %d: %s', snapshot.iteration, self.path)
        return self.path

    @staticmethod
    def load(path: str) -> Checkpoint:
        """Read and validate a checkpoint artifact.

        Args:
            path: Artifact path.

        Returns:
            The decoded :class:`Checkpoint`.

        Raises:
            CheckpointVersionMismatch: If the artifact has another format
                tag or version.
            CheckpointError: If the artifact is missing or damaged.
        """
        try:
            with open(path, "rb") as fh:
                envelope = pickle.load(fh)
        except FileNotFoundError as exc:
            raise CheckpointError(f"Checkpoint not found: {path}") from exc
        except (OSError, pickle.UnpicklingError, EOFError, ValueError, TypeError,
                ImportError, AttributeError, IndexError) as exc:
            raise CheckpointError(f"Unreadable checkpoint {path}: {exc}") from exc

        if not isinstance(envelope, dict) or envelope.get("format") != CHECKPOINT_FORMAT:
            found = envelope.get("format") if isinstance(envelope, dict) else type(envelope).__name__
            raise CheckpointVersionMismatch(CHECKPOINT_FORMAT, found, what="checkpoint format")
        if envelope.get("version") != CHECKPOINT_VERSION:
            raise CheckpointVersionMismatch(CHECKPOINT_VERSION, envelope.get("version"))

        payload = envelope.get("payload")
        if not isinstance(payload, bytes) or bytes_sha256(payload) != envelope.get("digest"):
            raise CheckpointError(f"Checkpoint payload digest mismatch: {path}")

        try:
            data = pickle.loads(payload)
        except (pickle.UnpicklingError, EOFError, AttributeError, ImportError, ValueError,
                TypeError, IndexError) as exc:
            raise CheckpointError(f"Unreadable checkpoint payload {path}: {exc}") from exc

        logger.debug('Loaded checkpoint %s (iteration %s)', path, data["state"].get("iteration"))
        return Checkpoint(
            state=data["state"],
            config=data.get("config") or {},
            solver_name=data.get("solver_name"),
            solver_version=data.get("solver_version"),
            solver_blob=data.get("solver_blob"),
            created=data.get("created", ""),
        )
