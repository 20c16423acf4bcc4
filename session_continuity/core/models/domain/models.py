"""Domain records returned by the continuity stores."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import Field

from ..base import BaseSchema
from .enums import CheckpointKind, CommandType, EventKind, SessionRole, SessionStatus
from .work_state import WorkState

# Rows written by a newer release may carry kinds this release does not know.
KindField = Annotated[Union[EventKind, str], Field(union_mode="left_to_right")]


class SupervisorSession(BaseSchema):
    """A supervisory session with its liveness derived at read time."""

    id: str
    project: str
    role: SessionRole
    host_machine: Optional[str] = None
    current_work_item: Optional[str] = None
    context_percent: int = 0
    last_heartbeat: datetime
    created_at: datetime
    closed_at: Optional[datetime] = None
    status: SessionStatus
    seconds_since_heartbeat: float = 0.0

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.active


class Event(BaseSchema):
    """An immutable lineage-tracked fact."""

    id: str
    session_id: str
    kind: KindField
    sequence_num: int
    timestamp: datetime
    payload: Dict[str, Any] = Field(default_factory=dict)
    parent_id: Optional[str] = None
    root_id: str
    depth: int = 0
    duration_ms: Optional[int] = None
    success: Optional[bool] = None
    error: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


class EventQueryFilters(BaseSchema):
    kinds: Optional[List[EventKind]] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    keyword: Optional[str] = None
    root_id: Optional[str] = None


class EventPage(BaseSchema):
    events: List[Event]
    total_count: int
    has_more: bool
    limit: int
    offset: int


class Checkpoint(BaseSchema):
    id: str
    session_id: str
    kind: CheckpointKind
    sequence_num: int
    work_state: WorkState
    context_percent: Optional[int] = None
    trigger: Optional[str] = None
    note: Optional[str] = None
    event_id: Optional[str] = None
    size_bytes: int
    created_at: datetime


class CheckpointView(BaseSchema):
    """A checkpoint plus the recovery narrative derived from it."""

    checkpoint: Checkpoint
    recovery_narrative: str

    @property
    def state(self) -> WorkState:
        return self.checkpoint.work_state


class CheckpointPage(BaseSchema):
    checkpoints: List[Checkpoint]
    total_count: int
    has_more: bool


class CleanupReport(BaseSchema):
    deleted_count: int
    bytes_freed: int
    cutoff: datetime


class CheckpointStats(BaseSchema):
    session_id: str
    total: int
    by_kind: Dict[str, int] = Field(default_factory=dict)
    total_bytes: int = 0
    latest_at: Optional[datetime] = None


class CommandRecord(BaseSchema):
    """One recorded command or tool call."""

    id: str
    session_id: str
    command_type: CommandType
    action: str
    tool_name: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Dict[str, Any]] = None
    success: bool = True
    error: Optional[str] = None
    execution_time_ms: Optional[int] = None
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
