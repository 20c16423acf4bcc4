"""Work-state snapshot carried by checkpoints and produced by reconstruction."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from ..base import BaseSchema


class WorkItemPhase(str, Enum):
    planning = "planning"
    implementation = "implementation"
    validation = "validation"
    complete = "complete"
    failed = "failed"
    blocked = "blocked"


class FileChangeStatus(str, Enum):
    added = "added"
    modified = "modified"
    deleted = "deleted"
    renamed = "renamed"


class WorkItemSnapshot(BaseSchema):
    """The unit of work the session was on."""

    work_item_id: str
    title: Optional[str] = None
    phase: WorkItemPhase = WorkItemPhase.implementation
    started_at: Optional[datetime] = None
    tests_passed: Optional[int] = Field(default=None, ge=0)
    tests_failed: Optional[int] = Field(default=None, ge=0)
    coverage_percent: Optional[float] = Field(default=None, ge=0, le=100)


class FileChange(BaseSchema):
    path: str
    status: FileChangeStatus = FileChangeStatus.modified
    lines_changed: Optional[int] = Field(default=None, ge=0)


class GitSnapshot(BaseSchema):
    """Version-control status at snapshot time."""

    branch: Optional[str] = None
    last_commit: Optional[str] = None
    commit_count: int = Field(default=0, ge=0)
    commits_ahead: int = Field(default=0, ge=0)
    staged_files: List[str] = Field(default_factory=list)
    unstaged_files: List[str] = Field(default_factory=list)
    untracked_files: List[str] = Field(default_factory=list)
    open_pull_requests: List[str] = Field(default_factory=list)

    @property
    def has_uncommitted_changes(self) -> bool:
        return bool(self.staged_files or self.unstaged_files or self.untracked_files)


class ActionSummary(BaseSchema):
    action: str
    target: Optional[str] = None
    outcome: Optional[str] = None
    at: Optional[datetime] = None


class PlanStatus(BaseSchema):
    current_phase: Optional[str] = None
    completed_items: List[str] = Field(default_factory=list)
    remaining_items: List[str] = Field(default_factory=list)


class WorkEnvironment(BaseSchema):
    project: Optional[str] = None
    working_directory: Optional[str] = None
    host_machine: Optional[str] = None


class WorkState(BaseSchema):
    """
    Believed-relevant session state.

    A summary, not a history: checkpoint bodies are size-limited, so lists
    here are expected to stay short.
    """

    current_work_item: Optional[WorkItemSnapshot] = None
    modified_files: List[FileChange] = Field(default_factory=list)
    git: Optional[GitSnapshot] = None
    recent_actions: List[ActionSummary] = Field(default_factory=list)
    plan: Optional[PlanStatus] = None
    environment: Optional[WorkEnvironment] = None
    pending_tasks: List[str] = Field(default_factory=list)
    important_context: List[str] = Field(default_factory=list)
    snapshot_at: Optional[datetime] = None
