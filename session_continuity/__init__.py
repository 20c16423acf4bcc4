"""Session continuity engine.

Keeps long-running supervisor sessions recoverable after they stop
heartbeating: every meaningful action is recorded as an event with causal
lineage, work state is snapshotted into checkpoints, and a later session can
resume a dormant one from a free-text hint.

Core subpackages
----------------

- ``session_continuity.lineage``: append-only event log, payload registry,
  replay reducer, parent propagation and best-effort emission.
- ``session_continuity.sessions``: session registry (ids, heartbeats,
  liveness) and the raw command history.
- ``session_continuity.checkpoints``: size-bounded work-state snapshots with
  recovery narratives and age-based cleanup.
- ``session_continuity.resume``: hint resolution, multi-source
  reconstruction, confidence scoring and the resume engine.
- ``session_continuity.core``: configuration, errors, logging, monitoring,
  persistence and domain models.

``session_continuity.service`` wires all of it into ``ContinuityService``.
"""

from .core.errors import (
    ActiveSessionConflictError,
    AmbiguousResolutionError,
    CheckpointNotFoundError,
    ContinuityError,
    EventNotFoundError,
    NotFoundError,
    SessionNotFoundError,
    ValidationError,
)
from .service import ContinuityRuntime, ContinuityService, build_continuity

__all__ = [
    "ActiveSessionConflictError",
    "AmbiguousResolutionError",
    "CheckpointNotFoundError",
    "ContinuityError",
    "ContinuityRuntime",
    "ContinuityService",
    "EventNotFoundError",
    "NotFoundError",
    "SessionNotFoundError",
    "ValidationError",
    "build_continuity",
]
