"""Result types produced by the resume pipeline."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import Field

from ..core.models.base import BaseSchema
from ..core.models.domain import ReconstructionSource, ResolutionStrategy, SessionRole, WorkState


class SessionCandidate(BaseSchema):
    """One entry of a numbered disambiguation list."""

    index: int = Field(ge=1)
    session_id: str
    project: str
    role: SessionRole
    last_seen: datetime
    current_work_item: Optional[str] = None
    idle_minutes: int = 0


class Resolution(BaseSchema):
    session_id: str
    strategy: ResolutionStrategy


class AnomalyKind(str, Enum):
    missing_file = "missing_file"
    missing_directory = "missing_directory"
    missing_branch = "missing_branch"


class Anomaly(BaseSchema):
    """A referenced artifact that no longer exists."""

    kind: AnomalyKind
    target: str
    message: str


class Reconstruction(BaseSchema):
    """Best-effort description of a session's last known state."""

    session_id: str
    project: str
    source: ReconstructionSource
    work_state: WorkState
    source_timestamp: Optional[datetime] = None
    age_minutes: float = 0.0
    activity_gap_minutes: float = 0.0
    events_considered: int = 0
    checkpoint_id: Optional[str] = None
    causal_chain: List[str] = Field(default_factory=list)
    anomalies: List[Anomaly] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class ConfidenceLevel(str, Enum):
    high = "high"
    moderate = "moderate"
    low = "low"


class ConfidenceScore(BaseSchema):
    value: int = Field(ge=0, le=100)
    level: ConfidenceLevel
    reason: str
    warnings: List[str] = Field(default_factory=list)


class ResumeSummary(BaseSchema):
    """Counts and status lines shown to whoever picks the session back up."""

    work_item_id: Optional[str] = None
    work_item_title: Optional[str] = None
    work_item_status: Optional[str] = None
    files_modified: Optional[int] = None
    tests_passed: Optional[int] = None
    tests_failed: Optional[int] = None
    commits: Optional[int] = None
    branch: Optional[str] = None
    text: str


class ResumeResult(BaseSchema):
    session_id: str
    project: str
    strategy: ResolutionStrategy
    reconstruction: Reconstruction
    confidence: ConfidenceScore
    summary: ResumeSummary
    next_steps: List[str] = Field(default_factory=list)
    handoff: str


class Disambiguation(BaseSchema):
    hint: Optional[str] = None
    candidates: List[SessionCandidate]
    message: str


class ResumeNotFound(BaseSchema):
    hint: Optional[str] = None
    message: str


ResumeResponse = Union[ResumeResult, Disambiguation, ResumeNotFound]
