"""Integration tests for the full resume flow."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import insert, update

from session_continuity.core.database import EventRecord, SessionRecord
from session_continuity.core.errors import ActiveSessionConflictError, ValidationError
from session_continuity.core.models.domain import (
    CheckpointKind,
    EventKind,
    GitSnapshot,
    ReconstructionSource,
    ResolutionStrategy,
    WorkItemPhase,
    WorkItemSnapshot,
    WorkState,
)
from session_continuity.resume import (
    DISAMBIGUATION_MESSAGE,
    ConfidenceLevel,
    Disambiguation,
    ResumeNotFound,
    ResumeResult,
)


def work_state() -> WorkState:
    return WorkState(
        current_work_item=WorkItemSnapshot(
            work_item_id="W-42",
            title="Login flow",
            phase=WorkItemPhase.validation,
            tests_passed=10,
            tests_failed=2,
        ),
        git=GitSnapshot(branch="feature/login", commit_count=4, unstaged_files=["src/login.py"]),
        pending_tasks=["update docs"],
    )


class TestResume:
    """End-to-end resume through the service."""

    async def test_fresh_checkpoint(self, service, session, clock):
        """Test resuming from a two-minute-old checkpoint gives full confidence."""
        checkpoint_id = await service.create_checkpoint(session.id, CheckpointKind.manual, work_state(), 55)
        clock.advance(seconds=120)

        result = await service.resume(session.id)

        assert isinstance(result, ResumeResult)
        assert result.strategy == ResolutionStrategy.exact
        assert result.reconstruction.source == ReconstructionSource.checkpoint
        assert result.reconstruction.checkpoint_id == checkpoint_id
        assert result.confidence.value == 100
        assert result.confidence.level == ConfidenceLevel.high
        assert result.summary.work_item_id == "W-42"
        assert result.summary.tests_failed == 2
        assert result.summary.commits == 4
        assert result.next_steps[:3] == [
            "Fix 2 failing test(s) for W-42",
            "Review and commit uncommitted changes",
            "Finish validating W-42 (run the test suite)",
        ]
        assert result.handoff.startswith(f"# Session handoff: {session.id}\n")
        assert "- Confidence: 100/100 (high)" in result.handoff

    async def test_large_history_is_bounded(self, service, session, session_factory, clock):
        """Test a session with a long event log replays only the recent window."""
        total = 10_000
        rows = []
        for i in range(total):
            event_id = str(uuid.uuid4())
            rows.append(
                {
                    "id": event_id,
                    "session_id": session.id,
                    "kind": "user.message",
                    "sequence_num": i + 1,
                    "timestamp": clock.now + timedelta(milliseconds=i),
                    "payload": {"text": f"message {i}"},
                    "parent_id": None,
                    "root_id": event_id,
                    "depth": 0,
                }
            )
        async with session_factory() as s:
            await s.execute(insert(EventRecord), rows)
            await s.execute(update(SessionRecord).where(SessionRecord.id == session.id).values(event_seq=total))
            await s.commit()
        clock.advance(minutes=5)

        result = await service.resume(session.id)

        rec = result.reconstruction
        assert rec.source == ReconstructionSource.events
        assert rec.events_considered == 100
        assert any("last 100 of 10000 events" in w for w in result.confidence.warnings)
        assert result.confidence.level == ConfidenceLevel.low

    async def test_liveness_pings_keep_work_in_replay_window(self, service, session, clock):
        """Test an hour of heartbeats after the last work events does not hide them from replay."""
        await service.append_event(session.id, EventKind.work_started, {"work_item_id": "W-7"})
        await service.append_event(session.id, EventKind.commit_created, {"sha": "abc1234", "branch": "feat/w7"})
        await service.append_event(session.id, EventKind.test_failed, {"failed": 3})
        for _ in range(120):
            clock.advance(seconds=30)
            await service.heartbeat(session.id, context_percent=40)
        clock.advance(minutes=5)

        result = await service.resume(session.id)

        assert await service.events.count(session.id) == 3
        assert result.reconstruction.source == ReconstructionSource.events
        assert result.reconstruction.events_considered == 3
        assert result.summary.work_item_id == "W-7"
        assert result.summary.commits == 1
        assert result.summary.branch == "feat/w7"
        assert result.summary.tests_failed == 3

    async def test_heartbeat_events_are_not_replayed(self, service, session, clock):
        """Test recorded session.heartbeat events are skipped when filling the replay window."""
        await service.append_event(session.id, EventKind.work_started, {"work_item_id": "W-8"})
        await service.append_event(session.id, EventKind.commit_created, {"sha": "def5678"})
        for _ in range(150):
            await service.append_event(session.id, EventKind.session_heartbeat, {"context_percent": 10})
        clock.advance(minutes=5)

        result = await service.resume(session.id)

        rec = result.reconstruction
        assert rec.events_considered == 2
        assert not any("earlier history" in w for w in rec.warnings)
        assert result.summary.work_item_id == "W-8"
        assert result.summary.commits == 1

    async def test_disambiguation_and_choice(self, service, clock):
        """Test ambiguous hints list candidates and a choice picks one."""
        await service.sessions.register("proj", session_id="proj-A-1111")
        clock.advance(minutes=1)
        await service.sessions.register("proj", session_id="proj-A-2222")
        clock.advance(minutes=5)

        listing = await service.resume("proj-A")
        picked = await service.resume("proj-A", choice=2)

        assert isinstance(listing, Disambiguation)
        assert listing.message == DISAMBIGUATION_MESSAGE
        assert [c.session_id for c in listing.candidates] == ["proj-A-2222", "proj-A-1111"]
        assert isinstance(picked, ResumeResult)
        assert picked.session_id == "proj-A-1111"
        assert picked.strategy == ResolutionStrategy.choice
        with pytest.raises(ValidationError):
            await service.resume("proj-A", choice=3)

    async def test_not_found(self, service):
        """Test an unmatched hint returns a not-found response."""
        result = await service.resume("nobody")

        assert isinstance(result, ResumeNotFound)
        assert result.hint == "nobody"
        assert "nobody" in result.message

    async def test_active_conflict(self, service, session):
        """Test resuming an active session is refused."""
        with pytest.raises(ActiveSessionConflictError):
            await service.resume(session.id)

    async def test_resume_is_read_only(self, service, session, clock):
        """Test resuming writes no events, checkpoints or heartbeats."""
        await service.create_checkpoint(session.id, CheckpointKind.manual, work_state())
        clock.advance(minutes=10)
        before_events = await service.events.count(session.id)
        before = await service.get_session(session.id)

        await service.resume(session.id)
        await service.resume(session.id)

        after = await service.get_session(session.id)
        assert await service.events.count(session.id) == before_events
        assert (await service.checkpoint_stats(session.id)).total == 1
        assert after.last_heartbeat == before.last_heartbeat

    async def test_session_record_fallback_is_low_confidence(self, service, clock):
        """Test a session with no history still resumes, flagged as low confidence."""
        registered = await service.sessions.register("solo", current_work_item="W-1")
        clock.advance(minutes=3)

        result = await service.resume("solo")

        assert result.session_id == registered.id
        assert result.strategy == ResolutionStrategy.project
        assert result.confidence.value == 50
        assert result.next_steps == ["Continue implementing W-1"]
