"""Domain enums for the continuity engine."""

from __future__ import annotations

from enum import Enum


class EventKind(str, Enum):
    """
    Fixed set of event kinds accepted by the event log.

    Every kind has a payload model registered in
    ``session_continuity.lineage.payloads``. New kinds are added at the end;
    existing values never change so older rows stay readable.
    """

    session_registered = "session.registered"
    session_heartbeat = "session.heartbeat"
    session_closed = "session.closed"
    work_planned = "work.planned"
    work_started = "work.started"
    work_completed = "work.completed"
    work_failed = "work.failed"
    test_started = "test.started"
    test_passed = "test.passed"
    test_failed = "test.failed"
    validation_passed = "validation.passed"
    validation_failed = "validation.failed"
    commit_created = "commit.created"
    pr_created = "pr.created"
    pr_merged = "pr.merged"
    deployment_started = "deployment.started"
    deployment_completed = "deployment.completed"
    deployment_failed = "deployment.failed"
    context_updated = "context.updated"
    checkpoint_created = "checkpoint.created"
    checkpoint_loaded = "checkpoint.loaded"
    feature_requested = "feature.requested"
    task_spawned = "task.spawned"
    user_message = "user.message"
    assistant_started = "assistant.started"
    spawn_decided = "spawn.decided"
    tool_invoked = "tool.invoked"
    tool_result = "tool.result"
    error = "error"


class CheckpointKind(str, Enum):
    """What caused a checkpoint to be taken."""

    context_pressure = "context_pressure"  # Context budget crossed the threshold.
    work_completed = "work_completed"  # A unit of work finished.
    manual = "manual"


class SessionRole(str, Enum):
    """Role of a supervisory session; the value is the tag used in session ids."""

    primary = "PS"
    meta = "MS"


class SessionStatus(str, Enum):
    """Derived liveness of a session. Never stored."""

    active = "active"
    dormant = "dormant"
    closed = "closed"


class ReconstructionSource(str, Enum):
    """Which source a reconstruction was built from, best first."""

    checkpoint = "checkpoint"
    events = "events"
    command_history = "command_history"
    session_record = "session_record"


class ResolutionStrategy(str, Enum):
    """Strategy that turned a resume hint into a session id."""

    exact = "exact"
    partial = "partial"
    project = "project"
    work_item = "work_item"
    newest = "newest"
    choice = "choice"


class CommandType(str, Enum):
    explicit = "explicit"
    tool = "tool"
