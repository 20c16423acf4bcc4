"""Integration tests for multi-source reconstruction."""

import pytest

from session_continuity.core.config import Settings
from session_continuity.core.models.domain import (
    CheckpointKind,
    EventKind,
    FileChange,
    FileChangeStatus,
    GitSnapshot,
    ReconstructionSource,
    WorkEnvironment,
    WorkItemSnapshot,
    WorkState,
)
from session_continuity.resume import AnomalyKind
from session_continuity.service import build_continuity

WORKDIR = "/work/proj"


def state_with_artifacts(files=("src/a.py", "src/b.py"), branch="feature/x") -> WorkState:
    return WorkState(
        current_work_item=WorkItemSnapshot(work_item_id="W-1"),
        modified_files=[FileChange(path=p) for p in files],
        git=GitSnapshot(branch=branch),
        environment=WorkEnvironment(project="proj", working_directory=WORKDIR),
    )


async def reconstruct(service, session_id):
    return await service.reconstructor.reconstruct(await service.sessions.require(session_id))


class TestSources:
    """The best available source wins."""

    async def test_checkpoint_source(self, service, session, clock, validator):
        """Test the newest checkpoint is used and its age recorded."""
        validator.paths |= {WORKDIR, f"{WORKDIR}/src/a.py", f"{WORKDIR}/src/b.py"}
        validator.branches[WORKDIR] = {"feature/x"}
        await service.events.append(session.id, EventKind.work_started, {"work_item_id": "W-9"})
        await service.checkpoints.create(session.id, CheckpointKind.manual, state_with_artifacts())
        clock.advance(minutes=1)
        newest = await service.checkpoints.create(session.id, CheckpointKind.manual, state_with_artifacts())
        clock.advance(minutes=10)

        rec = await reconstruct(service, session.id)

        assert rec.source == ReconstructionSource.checkpoint
        assert rec.checkpoint_id == newest
        assert rec.work_state.current_work_item.work_item_id == "W-1"
        assert rec.age_minutes == pytest.approx(10)
        assert rec.anomalies == []
        assert rec.warnings == []

    async def test_events_source(self, service, session, clock):
        """Test replay of recent events when no checkpoint exists."""
        root = await service.events.append(session.id, EventKind.work_started, {"work_item_id": "W-5", "title": "API"})
        await service.events.append(session.id, EventKind.test_started, {}, parent_id=root)
        commit = await service.events.append(
            session.id,
            EventKind.commit_created,
            {"sha": "abc1234", "branch": "feature/api", "files": ["api.py"]},
            parent_id=root,
        )
        await service.events.append(session.id, EventKind.test_passed, {"passed": 9}, parent_id=commit)
        clock.advance(minutes=5)

        rec = await reconstruct(service, session.id)

        item = rec.work_state.current_work_item
        assert rec.source == ReconstructionSource.events
        assert rec.events_considered == 4
        assert item.work_item_id == "W-5"
        assert item.title == "API"
        assert item.tests_passed == 9
        assert rec.work_state.git.branch == "feature/api"
        assert [f.path for f in rec.work_state.modified_files] == ["api.py"]
        assert rec.causal_chain == ["Started W-5", "Commit abc1234", "Tests passed: 9"]
        assert rec.age_minutes == pytest.approx(5)

    async def test_events_window_warning(self, session_factory, session, clock, validator):
        """Test only the replay window is folded and the truncation is reported."""
        settings = Settings(_env_file=None, replay_window=3)
        service = build_continuity(
            session_factory=session_factory, settings=settings, clock=clock, artifact_validator=validator
        )
        for i in range(5):
            await service.events.append(session.id, EventKind.commit_created, {"sha": f"sha{i:04d}"})

        rec = await reconstruct(service, session.id)

        assert rec.events_considered == 3
        assert rec.work_state.git.commit_count == 3
        assert any("last 3 of 5 events" in w for w in rec.warnings)

    async def test_command_history_source(self, service, session, clock):
        """Test raw commands are used when there are no checkpoints or events."""
        await service.commands.record(session.id, "open", parameters={"work_item_id": "W-3"})
        clock.advance(seconds=5)
        await service.commands.record(session.id, "pytest", tool_name="shell", success=False, error="1 failed")

        rec = await reconstruct(service, session.id)

        assert rec.source == ReconstructionSource.command_history
        assert rec.work_state.current_work_item.work_item_id == "W-3"
        assert [a.outcome for a in rec.work_state.recent_actions] == ["ok", "failed: 1 failed"]
        assert rec.warnings

    async def test_session_record_source(self, service, clock):
        """Test the session record is the last resort."""
        session = await service.sessions.register("proj", current_work_item="W-8")
        clock.advance(minutes=3)

        rec = await reconstruct(service, session.id)

        assert rec.source == ReconstructionSource.session_record
        assert rec.work_state.current_work_item.work_item_id == "W-8"
        assert rec.age_minutes == pytest.approx(3)

    async def test_activity_gap(self, service, session, clock):
        """Test the gap between the source and the last heartbeat is measured."""
        await service.checkpoints.create(session.id, CheckpointKind.manual, WorkState())
        clock.advance(minutes=45)
        await service.sessions.heartbeat(session.id)
        clock.advance(minutes=5)

        rec = await reconstruct(service, session.id)

        assert rec.activity_gap_minutes == pytest.approx(45)
        assert rec.age_minutes == pytest.approx(50)


class TestArtifactValidation:
    """Missing artifacts become anomalies, never failures."""

    async def test_missing_file_and_branch(self, service, session, validator):
        """Test vanished files and branches are reported."""
        validator.paths |= {WORKDIR, f"{WORKDIR}/src/a.py"}
        validator.branches[WORKDIR] = {"main"}
        await service.checkpoints.create(session.id, CheckpointKind.manual, state_with_artifacts())

        rec = await reconstruct(service, session.id)

        kinds = {(a.kind, a.target) for a in rec.anomalies}
        assert kinds == {(AnomalyKind.missing_file, "src/b.py"), (AnomalyKind.missing_branch, "feature/x")}
        assert "Branch no longer exists: feature/x" in rec.warnings

    async def test_missing_directory_skips_relative_checks(self, service, session, validator):
        """Test a missing working directory is reported once and relative paths are not checked."""
        validator.branches[WORKDIR] = {"main"}
        await service.checkpoints.create(session.id, CheckpointKind.manual, state_with_artifacts())

        rec = await reconstruct(service, session.id)

        assert [a.kind for a in rec.anomalies] == [AnomalyKind.missing_directory]
        assert validator.path_checks == 1

    async def test_deleted_files_and_unknown_branch_status(self, service, session, validator):
        """Test deleted files are not checked and undeterminable branches are not anomalies."""
        validator.paths |= {WORKDIR}
        state = state_with_artifacts(files=()).model_copy(
            update={"modified_files": [FileChange(path="gone.py", status=FileChangeStatus.deleted)]}
        )
        await service.checkpoints.create(session.id, CheckpointKind.manual, state)

        rec = await reconstruct(service, session.id)

        assert rec.anomalies == []
        assert validator.path_checks == 1

    async def test_check_limit(self, session_factory, session, clock, validator):
        """Test at most artifact_check_limit files are checked."""
        settings = Settings(_env_file=None, artifact_check_limit=2)
        service = build_continuity(
            session_factory=session_factory, settings=settings, clock=clock, artifact_validator=validator
        )
        validator.paths |= {WORKDIR}
        await service.checkpoints.create(
            session.id, CheckpointKind.manual, state_with_artifacts(files=[f"f{i}.py" for i in range(6)])
        )

        rec = await reconstruct(service, session.id)

        assert validator.path_checks == 3
        assert len([a for a in rec.anomalies if a.kind == AnomalyKind.missing_file]) == 2
