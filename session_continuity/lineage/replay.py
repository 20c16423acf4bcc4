"""Pure event reducer used to rebuild session state from the event log.

``REDUCERS`` maps an event kind to a function of ``(state, payload)`` that
returns the fields to change. ``apply_event`` merges those changes with the
bookkeeping fields (last kind, sequence, timestamp, count) and returns a new
``ReplayState``; nothing is mutated and no clock or I/O is involved, so the
same events always fold to the same state.

Lists in the state are capped, so folding an arbitrarily long history keeps
the state itself small.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from ..core.models.domain import Event, EventKind
from ..core.models.domain.work_state import WorkItemPhase

LIST_CAP = 50

Reducer = Callable[["ReplayState", Dict[str, Any]], Dict[str, Any]]


class ReplayState(BaseModel):
    """State reconstructed by folding events in sequence order."""

    last_work_item: Optional[str] = None
    work_item_title: Optional[str] = None
    work_item_phase: Optional[WorkItemPhase] = None
    work_items_completed: List[str] = Field(default_factory=list)
    work_items_failed: List[str] = Field(default_factory=list)

    tests_passed: Optional[int] = None
    tests_failed: Optional[int] = None
    coverage_percent: Optional[float] = None

    commit_count: int = 0
    last_commit: Optional[str] = None
    branch: Optional[str] = None
    files_touched: List[str] = Field(default_factory=list)
    open_pull_requests: List[int] = Field(default_factory=list)
    merged_pull_requests: int = 0
    deployments: Dict[str, str] = Field(default_factory=dict)

    context_percent: Optional[int] = None
    last_checkpoint_id: Optional[str] = None
    error_count: int = 0
    last_error: Optional[str] = None

    last_event_kind: Optional[str] = None
    last_sequence: int = 0
    latest_timestamp: Optional[datetime] = None
    events_replayed: int = 0


class ReplayResult(BaseModel):
    state: ReplayState
    events_replayed: int
    to_sequence: Optional[int] = None


def _capped(items: List[Any], *extra: Any, unique: bool = False) -> List[Any]:
    out = list(items)
    for item in extra:
        if unique and item in out:
            out.remove(item)
        out.append(item)
    return out[-LIST_CAP:]


def _work_planned(state: ReplayState, p: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "last_work_item": p["work_item_id"],
        "work_item_title": p.get("title"),
        "work_item_phase": WorkItemPhase.planning,
        "tests_passed": None,
        "tests_failed": None,
    }


def _work_started(state: ReplayState, p: Dict[str, Any]) -> Dict[str, Any]:
    changes: Dict[str, Any] = {"last_work_item": p["work_item_id"], "work_item_phase": WorkItemPhase.implementation}
    if p["work_item_id"] != state.last_work_item:
        changes.update(work_item_title=p.get("title"), tests_passed=None, tests_failed=None)
    elif p.get("title"):
        changes["work_item_title"] = p["title"]
    return changes


def _work_completed(state: ReplayState, p: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "last_work_item": p["work_item_id"],
        "work_item_phase": WorkItemPhase.complete,
        "work_items_completed": _capped(state.work_items_completed, p["work_item_id"], unique=True),
    }


def _work_failed(state: ReplayState, p: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "last_work_item": p["work_item_id"],
        "work_item_phase": WorkItemPhase.failed,
        "work_items_failed": _capped(state.work_items_failed, p["work_item_id"], unique=True),
        "last_error": p["reason"],
    }


def _test_started(state: ReplayState, p: Dict[str, Any]) -> Dict[str, Any]:
    if state.last_work_item and state.work_item_phase in (WorkItemPhase.implementation, WorkItemPhase.planning):
        return {"work_item_phase": WorkItemPhase.validation}
    return {}


def _test_passed(state: ReplayState, p: Dict[str, Any]) -> Dict[str, Any]:
    changes = {"tests_passed": p["passed"], "tests_failed": p.get("failed", 0)}
    if "coverage_percent" in p:
        changes["coverage_percent"] = p["coverage_percent"]
    return changes


def _test_failed(state: ReplayState, p: Dict[str, Any]) -> Dict[str, Any]:
    return {"tests_passed": p.get("passed", 0), "tests_failed": p["failed"]}


def _validation_failed(state: ReplayState, p: Dict[str, Any]) -> Dict[str, Any]:
    return {"last_error": f"validation failed: {p['check']}"}


def _commit_created(state: ReplayState, p: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "commit_count": state.commit_count + 1,
        "last_commit": p["sha"],
        "branch": p.get("branch") or state.branch,
        "files_touched": _capped(state.files_touched, *p.get("files", []), unique=True),
    }


def _pr_created(state: ReplayState, p: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "open_pull_requests": _capped(state.open_pull_requests, p["pr_number"], unique=True),
        "branch": p.get("branch") or state.branch,
    }


def _pr_merged(state: ReplayState, p: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "open_pull_requests": [n for n in state.open_pull_requests if n != p["pr_number"]],
        "merged_pull_requests": state.merged_pull_requests + 1,
    }


def _deployment(status: str) -> Reducer:
    def reduce(state: ReplayState, p: Dict[str, Any]) -> Dict[str, Any]:
        deployments = dict(state.deployments)
        deployments[p["environment"]] = status
        return {"deployments": deployments}

    return reduce


def _context(state: ReplayState, p: Dict[str, Any]) -> Dict[str, Any]:
    changes: Dict[str, Any] = {}
    if p.get("context_percent") is not None:
        changes["context_percent"] = p["context_percent"]
    if p.get("current_work_item"):
        changes["last_work_item"] = p["current_work_item"]
    return changes


def _checkpoint(state: ReplayState, p: Dict[str, Any]) -> Dict[str, Any]:
    return {"last_checkpoint_id": p["checkpoint_id"]}


def _error(state: ReplayState, p: Dict[str, Any]) -> Dict[str, Any]:
    return {"error_count": state.error_count + 1, "last_error": p["message"]}


REDUCERS: Dict[EventKind, Reducer] = {
    EventKind.work_planned: _work_planned,
    EventKind.work_started: _work_started,
    EventKind.work_completed: _work_completed,
    EventKind.work_failed: _work_failed,
    EventKind.test_started: _test_started,
    EventKind.test_passed: _test_passed,
    EventKind.test_failed: _test_failed,
    EventKind.validation_failed: _validation_failed,
    EventKind.commit_created: _commit_created,
    EventKind.pr_created: _pr_created,
    EventKind.pr_merged: _pr_merged,
    EventKind.deployment_started: _deployment("started"),
    EventKind.deployment_completed: _deployment("completed"),
    EventKind.deployment_failed: _deployment("failed"),
    EventKind.context_updated: _context,
    EventKind.session_heartbeat: _context,
    EventKind.checkpoint_created: _checkpoint,
    EventKind.checkpoint_loaded: _checkpoint,
    EventKind.error: _error,
}


def apply_event(state: ReplayState, event: Event) -> ReplayState:
    """Fold one event into ``state`` and return the new state."""
    changes: Dict[str, Any] = {}
    reducer = REDUCERS.get(event.kind) if isinstance(event.kind, EventKind) else None
    if reducer is not None:
        try:
            changes = reducer(state, event.payload)
        except KeyError:
            # Rows written before a field became required.
            changes = {}
    if event.success is False and event.kind != EventKind.error:
        changes["error_count"] = changes.get("error_count", state.error_count) + 1
        changes["last_error"] = event.error or changes.get("last_error") or str(getattr(event.kind, "value", event.kind))

    changes.update(
        last_event_kind=str(getattr(event.kind, "value", event.kind)),
        last_sequence=event.sequence_num,
        latest_timestamp=event.timestamp,
        events_replayed=state.events_replayed + 1,
    )
    return state.model_copy(update=changes)


def reduce_events(events: Iterable[Event], initial: Optional[ReplayState] = None) -> ReplayState:
    """Fold ``events`` (in sequence order) starting from ``initial``."""
    state = initial if initial is not None else ReplayState()
    for event in events:
        state = apply_event(state, event)
    return state
