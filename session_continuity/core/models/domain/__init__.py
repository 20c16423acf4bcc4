"""Domain enums, records and work-state models."""

from .enums import (
    CheckpointKind,
    CommandType,
    EventKind,
    ReconstructionSource,
    ResolutionStrategy,
    SessionRole,
    SessionStatus,
)
from .models import (
    Checkpoint,
    CheckpointPage,
    CheckpointStats,
    CheckpointView,
    CleanupReport,
    CommandRecord,
    Event,
    EventPage,
    EventQueryFilters,
    SupervisorSession,
)
from .work_state import (
    ActionSummary,
    FileChange,
    FileChangeStatus,
    GitSnapshot,
    PlanStatus,
    WorkEnvironment,
    WorkItemPhase,
    WorkItemSnapshot,
    WorkState,
)

__all__ = [
    "ActionSummary",
    "Checkpoint",
    "CheckpointKind",
    "CheckpointPage",
    "CheckpointStats",
    "CheckpointView",
    "CleanupReport",
    "CommandRecord",
    "CommandType",
    "Event",
    "EventKind",
    "EventPage",
    "EventQueryFilters",
    "FileChange",
    "FileChangeStatus",
    "GitSnapshot",
    "PlanStatus",
    "ReconstructionSource",
    "ResolutionStrategy",
    "SessionRole",
    "SessionStatus",
    "SupervisorSession",
    "WorkEnvironment",
    "WorkItemPhase",
    "WorkItemSnapshot",
    "WorkState",
]
