"""
Error taxonomy for the continuity engine.

Store-level and validation errors propagate to the immediate caller
unchanged. ``AmbiguousResolutionError`` is not fatal: it carries the numbered
candidate list so the caller can re-invoke with a choice.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from ..resume.models import SessionCandidate


class ContinuityError(Exception):
    """Base class for all errors raised by the continuity engine."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details or {}

    def __str__(self) -> str:
        return self.message


class ValidationError(ContinuityError):
    """Malformed event kind, payload, checkpoint size or call argument."""


class SessionNotFoundError(ValidationError):
    """The referenced session does not exist or has been closed."""

    def __init__(self, session_id: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Session not found: {session_id}", details={"session_id": session_id})
        self.session_id = session_id


class CheckpointNotFoundError(ContinuityError):
    """No checkpoint exists with the requested id."""

    def __init__(self, checkpoint_id: str) -> None:
        super().__init__(f"Checkpoint not found: {checkpoint_id}", details={"checkpoint_id": checkpoint_id})
        self.checkpoint_id = checkpoint_id


class ActiveSessionConflictError(ContinuityError):
    """The resume target is still sending heartbeats."""

    def __init__(self, session_id: str, seconds_since_heartbeat: float) -> None:
        super().__init__(
            f"Session {session_id} is still active "
            f"(last heartbeat {seconds_since_heartbeat:.0f}s ago); refusing to resume it",
            details={"session_id": session_id, "seconds_since_heartbeat": seconds_since_heartbeat},
        )
        self.session_id = session_id
        self.seconds_since_heartbeat = seconds_since_heartbeat


class AmbiguousResolutionError(ContinuityError):
    """A resolution hint matched more than one dormant session."""

    def __init__(self, hint: Optional[str], candidates: List["SessionCandidate"], strategy: str) -> None:
        super().__init__(
            f"Hint {hint!r} matched {len(candidates)} sessions",
            details={"hint": hint, "strategy": strategy, "count": len(candidates)},
        )
        self.hint = hint
        self.candidates = candidates
        self.strategy = strategy


class NotFoundError(ContinuityError):
    """No session matched a resolution hint."""

    def __init__(self, hint: Optional[str]) -> None:
        if hint:
            message = f"No dormant session matches {hint!r}"
        else:
            message = "No dormant sessions found"
        super().__init__(message, details={"hint": hint})
        self.hint = hint


class EventNotFoundError(ContinuityError):
    """No event exists with the requested id."""

    def __init__(self, event_id: str) -> None:
        super().__init__(f"Event not found: {event_id}", details={"event_id": event_id})
        self.event_id = event_id
