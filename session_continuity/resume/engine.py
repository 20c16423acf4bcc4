"""Resume orchestration: resolve, re-check liveness, reconstruct, score, summarize.

The engine is read-only. It never writes events, checkpoints or heartbeats;
whoever takes the session over is expected to start heartbeating it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..core.config import Settings, get_settings
from ..core.database import Clock, utc_now
from ..core.errors import (
    ActiveSessionConflictError,
    AmbiguousResolutionError,
    NotFoundError,
    SessionNotFoundError,
    ValidationError,
)
from ..core.models.domain import ResolutionStrategy, SessionStatus
from ..core.monitoring import log_resume_outcome
from ..sessions import SessionRegistry
from .models import (
    ConfidenceScore,
    Disambiguation,
    Reconstruction,
    ResumeNotFound,
    ResumeResponse,
    ResumeResult,
    ResumeSummary,
)
from .next_steps import suggest_next_steps
from .reconstructor import ContextReconstructor
from .resolver import InstanceResolver
from .scoring import score

logger = logging.getLogger(__name__)

DISAMBIGUATION_MESSAGE = "Multiple sessions found. Use resume(<session id>) or pass choice=<n>."


def build_summary(rec: Reconstruction) -> ResumeSummary:
    """Counts and a one-paragraph status line for ``rec``."""
    state = rec.work_state
    item = state.current_work_item
    git = state.git

    lines = [f"Resuming {rec.session_id} ({rec.project}) from {rec.source.value}, {rec.age_minutes:.0f} min old."]
    if item is not None:
        title = f" '{item.title}'" if item.title else ""
        lines.append(f"Work item {item.work_item_id}{title} is in {item.phase.value}.")
    if state.modified_files:
        lines.append(f"{len(state.modified_files)} file(s) modified.")
    if item is not None and (item.tests_passed or item.tests_failed):
        lines.append(f"Tests: {item.tests_passed or 0} passed, {item.tests_failed or 0} failed.")
    if git is not None and (git.commit_count or git.branch):
        on_branch = f" on {git.branch}" if git.branch else ""
        lines.append(f"{git.commit_count} commit(s){on_branch}.")

    return ResumeSummary(
        work_item_id=item.work_item_id if item else None,
        work_item_title=item.title if item else None,
        work_item_status=item.phase.value if item else None,
        files_modified=len(state.modified_files),
        tests_passed=item.tests_passed if item else None,
        tests_failed=item.tests_failed if item else None,
        commits=git.commit_count if git else None,
        branch=git.branch if git else None,
        text=" ".join(lines),
    )


def build_handoff(
    rec: Reconstruction,
    strategy: ResolutionStrategy,
    confidence: ConfidenceScore,
    summary: ResumeSummary,
    next_steps: List[str],
) -> str:
    """Markdown handoff document for the resuming session."""
    out = [
        f"# Session handoff: {rec.session_id}",
        "",
        f"- Project: {rec.project}",
        f"- Resolved via: {strategy.value}",
        f"- Source: {rec.source.value}" + (f" ({rec.checkpoint_id})" if rec.checkpoint_id else ""),
        f"- Confidence: {confidence.value}/100 ({confidence.level.value}): {confidence.reason}",
        "",
        "## Summary",
        "",
        summary.text,
    ]

    if next_steps:
        out += ["", "## Next steps", ""]
        out += [f"{i}. {step}" for i, step in enumerate(next_steps, start=1)]

    if confidence.warnings:
        out += ["", "## Warnings", ""]
        out += [f"- {w}" for w in confidence.warnings]

    if rec.causal_chain:
        out += ["", "## Causal chain", ""]
        out += [f"- {link}" for link in rec.causal_chain]

    actions = rec.work_state.recent_actions
    if actions:
        out += ["", "## Recent actions", ""]
        for a in actions:
            target = f" {a.target}" if a.target else ""
            outcome = f" ({a.outcome})" if a.outcome else ""
            out.append(f"- {a.action}{target}{outcome}")

    return "\n".join(out) + "\n"


@dataclass(frozen=True)
class ResumeEngine:
    """Ties resolution, reconstruction and scoring into one ``resume`` call."""

    registry: SessionRegistry
    resolver: InstanceResolver
    reconstructor: ContextReconstructor
    settings: Settings = field(default_factory=get_settings)
    clock: Clock = utc_now

    async def resume(self, hint: Optional[str] = None, choice: Optional[int] = None) -> ResumeResponse:
        """
        Resume a dormant session.

        Args:
            hint: Session id, id fragment, project tag, work item id, or None for the newest dormant session.
            choice: 1-based index into the candidate list of an ambiguous hint. Ignored when the hint
                resolves to a single session.

        Returns:
            ``ResumeResult`` on success, ``Disambiguation`` when the hint is ambiguous and no choice was
            given, ``ResumeNotFound`` when nothing matches.

        Raises:
            ActiveSessionConflictError: the target is still heartbeating.
            ValidationError: ``choice`` is out of range.
        """
        try:
            resolution = await self.resolver.resolve(hint)
            session_id, strategy = resolution.session_id, resolution.strategy
        except AmbiguousResolutionError as e:
            if choice is None:
                log_resume_outcome("disambiguation", hint, candidates=len(e.candidates))
                return Disambiguation(hint=hint, candidates=e.candidates, message=DISAMBIGUATION_MESSAGE)
            if not 1 <= choice <= len(e.candidates):
                raise ValidationError(
                    f"Invalid choice {choice}; must be between 1 and {len(e.candidates)}",
                    details={"choice": choice, "candidates": len(e.candidates)},
                ) from e
            session_id, strategy = e.candidates[choice - 1].session_id, ResolutionStrategy.choice
        except NotFoundError as e:
            log_resume_outcome("not_found", hint)
            return ResumeNotFound(hint=hint, message=e.message)

        return await self._resume_session(session_id, strategy, hint)

    async def _resume_session(self, session_id: str, strategy: ResolutionStrategy, hint: Optional[str]) -> ResumeResult:
        logger.debug(f"Resuming {session_id} (strategy={strategy.value})")
        # Liveness may have changed since resolution.
        session = await self.registry.require(session_id)
        status = self.registry.status_of(session)
        if status == SessionStatus.closed:
            raise SessionNotFoundError(session_id, f"Session {session_id} is closed")
        if status == SessionStatus.active:
            raise ActiveSessionConflictError(session_id, session.seconds_since_heartbeat)

        rec = await self.reconstructor.reconstruct(session)
        confidence = score(rec)
        summary = build_summary(rec)
        steps = suggest_next_steps(rec)

        log_resume_outcome(
            "resumed",
            hint,
            session_id=session_id,
            strategy=strategy.value,
            source=rec.source.value,
            confidence=confidence.value,
        )
        return ResumeResult(
            session_id=session_id,
            project=session.project,
            strategy=strategy,
            reconstruction=rec,
            confidence=confidence,
            summary=summary,
            next_steps=steps,
            handoff=build_handoff(rec, strategy, confidence, summary, steps),
        )
