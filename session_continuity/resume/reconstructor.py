"""Rebuild a dormant session's last known state.

Sources are tried best-first and the first that has data wins:

1. the newest checkpoint (any age; the age is recorded for scoring),
2. replay of the bounded recent event window plus the causal chain of the
   newest event,
3. the last few command-log rows,
4. the session record itself.

Artifacts referenced by the reconstructed state (working directory, modified
files, branch) are then checked. Missing ones become anomalies and warnings
on the result; reconstruction itself never fails because of them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Protocol, Tuple

from ..checkpoints import CheckpointStore
from ..core.config import Settings, get_settings
from ..core.database import Clock, as_utc, utc_now
from ..core.models.domain import (
    ActionSummary,
    CommandRecord,
    Event,
    EventKind,
    FileChange,
    FileChangeStatus,
    GitSnapshot,
    ReconstructionSource,
    SupervisorSession,
    WorkEnvironment,
    WorkItemPhase,
    WorkItemSnapshot,
    WorkState,
)
from ..lineage import EventStore, ReplayState, describe_event, reduce_events
from ..sessions import CommandHistory
from .models import Anomaly, AnomalyKind, Reconstruction

logger = logging.getLogger(__name__)

CAUSAL_CHAIN_DEPTH = 10
RECENT_ACTIONS = 10
# Liveness pings carry no work state.
REPLAY_EXCLUDED_KINDS = (EventKind.session_heartbeat,)


class ArtifactValidator(Protocol):
    """Checks whether artifacts referenced by a reconstruction still exist."""

    async def path_exists(self, path: str) -> bool:
        ...

    async def branch_exists(self, repo_dir: str, branch: str) -> Optional[bool]:
        """True/False when known; None when it cannot be determined (no git, not a repo, timeout)."""
        ...


class LocalArtifactValidator:
    """Validate artifacts on the local filesystem and with ``git``."""

    def __init__(self, git_timeout_seconds: float = 5.0) -> None:
        self._timeout = git_timeout_seconds

    async def path_exists(self, path: str) -> bool:
        return await asyncio.to_thread(Path(path).exists)

    async def branch_exists(self, repo_dir: str, branch: str) -> Optional[bool]:
        if not branch or branch.startswith("-"):
            return None
        try:
            proc = await asyncio.create_subprocess_exec(
                "git",
                "rev-parse",
                "--verify",
                "--quiet",
                f"refs/heads/{branch}",
                cwd=repo_dir,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.debug(f"git unavailable for branch check in {repo_dir}: {e}")
            return None
        try:
            code = await asyncio.wait_for(proc.wait(), timeout=self._timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning(f"git branch check timed out after {self._timeout}s in {repo_dir}")
            return None
        # 0: ref exists, 1: ref missing (--quiet), anything else: not a repository.
        if code == 0:
            return True
        if code == 1:
            return False
        return None


def _minutes(later: datetime, earlier: Optional[datetime]) -> float:
    if earlier is None:
        return 0.0
    return max(0.0, (later - earlier).total_seconds() / 60.0)


def _environment(session: SupervisorSession) -> WorkEnvironment:
    return WorkEnvironment(project=session.project, host_machine=session.host_machine)


def work_state_from_replay(state: ReplayState, recent: List[Event], session: SupervisorSession) -> WorkState:
    """Map a folded ``ReplayState`` onto the shared ``WorkState`` shape."""
    item = None
    work_item_id = state.last_work_item or session.current_work_item
    if work_item_id:
        item = WorkItemSnapshot(
            work_item_id=work_item_id,
            title=state.work_item_title,
            phase=state.work_item_phase or WorkItemPhase.implementation,
            tests_passed=state.tests_passed,
            tests_failed=state.tests_failed,
            coverage_percent=state.coverage_percent,
        )

    git = None
    if state.branch or state.commit_count or state.open_pull_requests:
        git = GitSnapshot(
            branch=state.branch,
            last_commit=state.last_commit,
            commit_count=state.commit_count,
            open_pull_requests=[f"#{n}" for n in state.open_pull_requests],
        )

    context: List[str] = []
    if state.last_error:
        context.append(f"Last error: {state.last_error}")
    if state.work_items_completed:
        context.append(f"Completed: {', '.join(state.work_items_completed[-5:])}")
    for env, status in sorted(state.deployments.items()):
        context.append(f"Deployment to {env}: {status}")

    return WorkState(
        current_work_item=item,
        modified_files=[FileChange(path=p) for p in state.files_touched],
        git=git,
        recent_actions=[ActionSummary(action=describe_event(e), at=e.timestamp) for e in recent[-RECENT_ACTIONS:]],
        environment=_environment(session),
        important_context=context,
        snapshot_at=state.latest_timestamp,
    )


def work_state_from_commands(commands: List[CommandRecord], session: SupervisorSession) -> WorkState:
    """Best-effort state from raw command history."""
    work_item_id = session.current_work_item
    for cmd in reversed(commands):
        candidate = cmd.parameters.get("work_item_id") if isinstance(cmd.parameters, dict) else None
        if isinstance(candidate, str) and candidate:
            work_item_id = candidate
            break

    actions = []
    for cmd in commands[-RECENT_ACTIONS:]:
        outcome = "ok" if cmd.success else f"failed: {cmd.error or 'unknown error'}"
        actions.append(ActionSummary(action=cmd.action, target=cmd.tool_name, outcome=outcome, at=cmd.created_at))

    return WorkState(
        current_work_item=WorkItemSnapshot(work_item_id=work_item_id) if work_item_id else None,
        recent_actions=actions,
        environment=_environment(session),
        snapshot_at=commands[-1].created_at if commands else None,
    )


@dataclass(frozen=True)
class ContextReconstructor:
    """Multi-source state reconstruction."""

    events: EventStore
    checkpoints: CheckpointStore
    commands: CommandHistory
    validator: ArtifactValidator
    settings: Settings = field(default_factory=get_settings)
    clock: Clock = utc_now

    async def reconstruct(self, session: SupervisorSession) -> Reconstruction:
        """
        Reconstruct ``session`` from the best available source.

        Args:
            session: The resolved (dormant) session.

        Returns:
            Reconstruction tagged with its source, age and artifact anomalies.
        """
        now = as_utc(self.clock())
        rec = (
            await self._from_checkpoint(session)
            or await self._from_events(session)
            or await self._from_commands(session)
            or self._from_session_record(session)
        )

        anomalies, warnings = await self._validate_artifacts(rec.work_state)
        rec = rec.model_copy(
            update={
                "age_minutes": _minutes(now, rec.source_timestamp),
                "activity_gap_minutes": _minutes(session.last_heartbeat, rec.source_timestamp),
                "anomalies": anomalies,
                "warnings": rec.warnings + warnings,
            }
        )
        logger.info(
            f"Reconstructed {session.id} from {rec.source.value} "
            f"(age={rec.age_minutes:.1f}m, anomalies={len(anomalies)}, events={rec.events_considered})"
        )
        return rec

    async def _from_checkpoint(self, session: SupervisorSession) -> Optional[Reconstruction]:
        checkpoint = await self.checkpoints.latest(session.id)
        if checkpoint is None:
            return None
        state = checkpoint.work_state
        if state.environment is None:
            state = state.model_copy(update={"environment": _environment(session)})
        return Reconstruction(
            session_id=session.id,
            project=session.project,
            source=ReconstructionSource.checkpoint,
            work_state=state,
            source_timestamp=checkpoint.created_at,
            checkpoint_id=checkpoint.id,
        )

    async def _from_events(self, session: SupervisorSession) -> Optional[Reconstruction]:
        window = self.settings.replay_window
        recent = await self.events.get_recent(session.id, limit=window, exclude_kinds=REPLAY_EXCLUDED_KINDS)
        if not recent:
            return None

        state = reduce_events(recent)
        chain = await self.events.get_parent_chain(recent[-1].id, max_depth=CAUSAL_CHAIN_DEPTH)
        warnings = []
        if len(recent) >= window:
            total = await self.events.count(session.id, exclude_kinds=REPLAY_EXCLUDED_KINDS)
            if total > len(recent):
                warnings.append(f"Replayed the last {len(recent)} of {total} events; earlier history was not loaded")

        return Reconstruction(
            session_id=session.id,
            project=session.project,
            source=ReconstructionSource.events,
            work_state=work_state_from_replay(state, recent, session),
            source_timestamp=state.latest_timestamp,
            events_considered=len(recent),
            causal_chain=[describe_event(e) for e in reversed(chain)],
            warnings=warnings,
        )

    async def _from_commands(self, session: SupervisorSession) -> Optional[Reconstruction]:
        commands = await self.commands.recent(session.id, limit=self.settings.command_history_window)
        if not commands:
            return None
        return Reconstruction(
            session_id=session.id,
            project=session.project,
            source=ReconstructionSource.command_history,
            work_state=work_state_from_commands(commands, session),
            source_timestamp=commands[-1].created_at,
            warnings=[f"No checkpoint or events; reconstructed from the last {len(commands)} recorded commands"],
        )

    def _from_session_record(self, session: SupervisorSession) -> Reconstruction:
        item = WorkItemSnapshot(work_item_id=session.current_work_item) if session.current_work_item else None
        return Reconstruction(
            session_id=session.id,
            project=session.project,
            source=ReconstructionSource.session_record,
            work_state=WorkState(current_work_item=item, environment=_environment(session)),
            source_timestamp=session.last_heartbeat,
            warnings=["No checkpoint, events or command history; only the session record is available"],
        )

    async def _validate_artifacts(self, state: WorkState) -> Tuple[List[Anomaly], List[str]]:
        anomalies: List[Anomaly] = []
        workdir = state.environment.working_directory if state.environment else None
        workdir_ok = True

        if workdir:
            workdir_ok = await self.validator.path_exists(workdir)
            if not workdir_ok:
                anomalies.append(
                    Anomaly(
                        kind=AnomalyKind.missing_directory,
                        target=workdir,
                        message=f"Working directory no longer exists: {workdir}",
                    )
                )

        checked = 0
        for change in state.modified_files:
            if checked >= self.settings.artifact_check_limit:
                break
            if change.status == FileChangeStatus.deleted:
                continue
            path = Path(change.path)
            if not path.is_absolute():
                if not workdir or not workdir_ok:
                    continue
                path = Path(workdir) / path
            checked += 1
            if not await self.validator.path_exists(str(path)):
                anomalies.append(
                    Anomaly(
                        kind=AnomalyKind.missing_file,
                        target=change.path,
                        message=f"Modified file no longer exists: {change.path}",
                    )
                )

        branch = state.git.branch if state.git else None
        if branch and workdir and workdir_ok:
            exists = await self.validator.branch_exists(workdir, branch)
            if exists is False:
                anomalies.append(
                    Anomaly(
                        kind=AnomalyKind.missing_branch,
                        target=branch,
                        message=f"Branch no longer exists: {branch}",
                    )
                )

        return anomalies, [a.message for a in anomalies]
