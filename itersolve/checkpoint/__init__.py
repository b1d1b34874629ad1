"""Checkpointing — versioned, atomic save and load of run state."""

from itersolve.checkpoint.checkpointer import (
    CHECKPOINT_FORMAT,
    CHECKPOINT_VERSION,
    Checkpoint,
    Checkpointer,
)

__all__ = ["CHECKPOINT_FORMAT", "CHECKPOINT_VERSION", "Checkpoint", "Checkpointer"]
