"""Unit tests for the pure replay reducer."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from session_continuity.core.models.domain import Event, EventKind, WorkItemPhase
from session_continuity.lineage.replay import LIST_CAP, ReplayState, apply_event, reduce_events

T0 = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class _Log:
    """Builds a sequence of events for one session."""

    def __init__(self) -> None:
        self.events: List[Event] = []

    def add(self, kind, payload: Optional[Dict[str, Any]] = None, **kw) -> "_Log":
        seq = len(self.events) + 1
        self.events.append(
            Event(
                id=f"e-{seq}",
                session_id="s-1",
                kind=kind,
                sequence_num=seq,
                timestamp=T0 + timedelta(seconds=seq),
                payload=payload or {},
                root_id=f"e-{seq}",
                **kw,
            )
        )
        return self


class TestWorkItemLifecycle:
    """Work item events drive the phase."""

    def test_plan_start_test_complete(self):
        """Test the phase follows the lifecycle of one work item."""
        log = _Log()
        log.add(EventKind.work_planned, {"work_item_id": "W-1", "title": "Login"})
        assert reduce_events(log.events).work_item_phase == WorkItemPhase.planning

        log.add(EventKind.work_started, {"work_item_id": "W-1"})
        log.add(EventKind.test_started, {})
        state = reduce_events(log.events)
        assert state.work_item_phase == WorkItemPhase.validation
        assert state.work_item_title == "Login"

        log.add(EventKind.test_passed, {"passed": 12, "coverage_percent": 81.5})
        log.add(EventKind.work_completed, {"work_item_id": "W-1"})
        state = reduce_events(log.events)
        assert state.work_item_phase == WorkItemPhase.complete
        assert state.tests_passed == 12
        assert state.tests_failed == 0
        assert state.coverage_percent == 81.5
        assert state.work_items_completed == ["W-1"]

    def test_new_work_item_resets_tests(self):
        """Test starting another work item clears the previous test counts."""
        log = _Log()
        log.add(EventKind.work_started, {"work_item_id": "W-1"})
        log.add(EventKind.test_failed, {"failed": 2, "passed": 5})
        log.add(EventKind.work_started, {"work_item_id": "W-2", "title": "Logout"})

        state = reduce_events(log.events)

        assert state.last_work_item == "W-2"
        assert state.work_item_title == "Logout"
        assert state.tests_passed is None
        assert state.tests_failed is None

    def test_work_failed_records_reason(self):
        """Test failures are listed with their reason."""
        log = _Log().add(EventKind.work_failed, {"work_item_id": "W-1", "reason": "blocked on API"})

        state = reduce_events(log.events)

        assert state.work_item_phase == WorkItemPhase.failed
        assert state.work_items_failed == ["W-1"]
        assert state.last_error == "blocked on API"


class TestVersionControl:
    """Commits, pull requests and deployments."""

    def test_commits_and_pull_requests(self):
        """Test commit counting, touched files and PR bookkeeping."""
        log = _Log()
        log.add(EventKind.commit_created, {"sha": "aaaa111", "branch": "feat/x", "files": ["a.py", "b.py"]})
        log.add(EventKind.commit_created, {"sha": "bbbb222", "files": ["b.py", "c.py"]})
        log.add(EventKind.pr_created, {"pr_number": 7})
        log.add(EventKind.pr_created, {"pr_number": 8})
        log.add(EventKind.pr_merged, {"pr_number": 7})
        log.add(EventKind.deployment_started, {"environment": "staging"})
        log.add(EventKind.deployment_completed, {"environment": "staging"})

        state = reduce_events(log.events)

        assert state.commit_count == 2
        assert state.last_commit == "bbbb222"
        assert state.branch == "feat/x"
        assert state.files_touched == ["a.py", "b.py", "c.py"]
        assert state.open_pull_requests == [8]
        assert state.merged_pull_requests == 1
        assert state.deployments == {"staging": "completed"}

    def test_touched_files_are_capped(self):
        """Test long histories keep the file list bounded."""
        log = _Log()
        for i in range(LIST_CAP + 10):
            log.add(EventKind.commit_created, {"sha": f"{i:07d}", "files": [f"f{i}.py"]})

        state = reduce_events(log.events)

        assert len(state.files_touched) == LIST_CAP
        assert state.files_touched[-1] == f"f{LIST_CAP + 9}.py"


class TestBookkeeping:
    """Fields every event updates."""

    def test_sequence_and_counts(self):
        """Test last kind, sequence, timestamp and count track the newest event."""
        log = _Log().add(EventKind.user_message, {"text": "hi"}).add(EventKind.context_updated, {"context_percent": 64})

        state = reduce_events(log.events)

        assert state.last_event_kind == "context.updated"
        assert state.last_sequence == 2
        assert state.latest_timestamp == T0 + timedelta(seconds=2)
        assert state.events_replayed == 2
        assert state.context_percent == 64

    def test_unsuccessful_events_count_as_errors(self):
        """Test success=False on a non-error event increments the error count."""
        log = _Log()
        log.add(EventKind.tool_result, {"tool_name": "pytest"}, success=False, error="exit 1")
        log.add(EventKind.error, {"message": "disk full"})

        state = reduce_events(log.events)

        assert state.error_count == 2
        assert state.last_error == "disk full"

    def test_unknown_kind_only_updates_bookkeeping(self):
        """Test kinds unknown to this release are skipped safely."""
        log = _Log().add("future.kind", {"anything": 1})

        state = reduce_events(log.events)

        assert state.events_replayed == 1
        assert state.last_event_kind == "future.kind"
        assert state.last_work_item is None

    def test_pure_and_deterministic(self):
        """Test folding the same events twice yields equal states without mutating the input."""
        log = _Log().add(EventKind.work_started, {"work_item_id": "W-1"}).add(EventKind.commit_created, {"sha": "abcd"})
        initial = ReplayState()

        first = reduce_events(log.events, initial)
        second = reduce_events(log.events, initial)

        assert first == second
        assert initial == ReplayState()

    def test_apply_event_returns_new_state(self):
        """Test apply_event never mutates its input state."""
        state = ReplayState()
        event = _Log().add(EventKind.commit_created, {"sha": "abcd"}).events[0]

        new_state = apply_event(state, event)

        assert new_state is not state
        assert state.commit_count == 0
        assert new_state.commit_count == 1
