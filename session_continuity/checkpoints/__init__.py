"""Checkpoint store and recovery narratives."""

from .narrative import build_recovery_narrative
from .store import CheckpointStore, serialized_size

__all__ = ["CheckpointStore", "build_recovery_narrative", "serialized_size"]
