"""Resolve a free-text hint to exactly one dormant session.

Strategies run in order and the first one that yields a result wins:

1. exact     - hint equals a session id (case-insensitive)
2. partial   - hint (4+ chars) is a fragment of one or more dormant ids
3. project   - hint equals a project tag
4. work item - hint equals a session's current work item
5. newest    - no hint: the most recently dormant session

An exact hit on an *active* session raises ``ActiveSessionConflictError``:
two processes must never drive the same session. Partial and project
matches with several hits raise ``AmbiguousResolutionError`` carrying the
numbered candidates. Closed sessions are never candidates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import Settings, get_settings
from ..core.database import Clock, SessionRecord, as_utc, utc_now
from ..core.errors import ActiveSessionConflictError, AmbiguousResolutionError, NotFoundError
from ..core.models.domain import ResolutionStrategy, SessionRole
from .models import Resolution, SessionCandidate

logger = logging.getLogger(__name__)

MIN_PARTIAL_LENGTH = 4


def build_candidates(rows: Sequence[SessionRecord], now: datetime) -> List[SessionCandidate]:
    candidates = []
    for i, row in enumerate(rows, start=1):
        last_seen = as_utc(row.last_heartbeat)
        candidates.append(
            SessionCandidate(
                index=i,
                session_id=row.id,
                project=row.project,
                role=SessionRole(row.role),
                last_seen=last_seen,
                current_work_item=row.current_work_item,
                idle_minutes=max(0, int((now - last_seen).total_seconds() // 60)),
            )
        )
    return candidates


@dataclass(frozen=True)
class InstanceResolver:
    """Multi-strategy session resolver."""

    session_factory: async_sessionmaker[AsyncSession]
    settings: Settings = field(default_factory=get_settings)
    clock: Clock = utc_now

    def _dormant(self, cutoff: datetime) -> Any:
        return select(SessionRecord).where(
            SessionRecord.closed_at.is_(None),
            SessionRecord.last_heartbeat <= cutoff,
        )

    def _ordered(self, stmt: Any, limit: Optional[int] = None) -> Any:
        return stmt.order_by(SessionRecord.last_heartbeat.desc(), SessionRecord.id).limit(
            limit or self.settings.max_query_limit
        )

    async def resolve(self, hint: Optional[str] = None) -> Resolution:
        """
        Resolve ``hint`` to one dormant session.

        Args:
            hint: Session id, id fragment, project tag, work item id, or nothing.

        Returns:
            The resolved session id and the strategy that found it.

        Raises:
            ActiveSessionConflictError: the hint names an active session exactly.
            AmbiguousResolutionError: several dormant sessions match.
            NotFoundError: nothing matches.
        """
        now = as_utc(self.clock())
        window = self.settings.freshness_window_seconds
        cutoff = now - timedelta(seconds=window)
        text = (hint or "").strip()

        async with self.session_factory() as s:
            if not text:
                row = (await s.execute(self._ordered(self._dormant(cutoff), 1))).scalars().first()
                if row is None:
                    raise NotFoundError(None)
                return self._resolved(row.id, ResolutionStrategy.newest, hint)

            needle = text.lower()

            row = (
                await s.execute(
                    select(SessionRecord)
                    .where(func.lower(SessionRecord.id) == needle, SessionRecord.closed_at.is_(None))
                    .limit(1)
                )
            ).scalars().first()
            if row is not None:
                idle = (now - as_utc(row.last_heartbeat)).total_seconds()
                if idle < window:
                    raise ActiveSessionConflictError(row.id, max(0.0, idle))
                return self._resolved(row.id, ResolutionStrategy.exact, hint)

            if len(needle) >= MIN_PARTIAL_LENGTH:
                rows = (
                    await s.execute(
                        self._ordered(
                            self._dormant(cutoff).where(
                                func.lower(SessionRecord.id).contains(needle, autoescape=True),
                                func.lower(SessionRecord.project) != needle,
                            )
                        )
                    )
                ).scalars().all()
                if rows:
                    return self._single_or_ambiguous(rows, now, ResolutionStrategy.partial, hint)

            rows = (
                await s.execute(self._ordered(self._dormant(cutoff).where(func.lower(SessionRecord.project) == needle)))
            ).scalars().all()
            if rows:
                return self._single_or_ambiguous(rows, now, ResolutionStrategy.project, hint)

            row = (
                await s.execute(
                    self._ordered(self._dormant(cutoff).where(func.lower(SessionRecord.current_work_item) == needle), 1)
                )
            ).scalars().first()
            if row is not None:
                return self._resolved(row.id, ResolutionStrategy.work_item, hint)

        raise NotFoundError(text)

    def _resolved(self, session_id: str, strategy: ResolutionStrategy, hint: Optional[str]) -> Resolution:
        logger.debug(f"Resolved {hint!r} to {session_id} via {strategy.value}")
        return Resolution(session_id=session_id, strategy=strategy)

    def _single_or_ambiguous(
        self,
        rows: Sequence[SessionRecord],
        now: datetime,
        strategy: ResolutionStrategy,
        hint: Optional[str],
    ) -> Resolution:
        if len(rows) == 1:
            return self._resolved(rows[0].id, strategy, hint)
        raise AmbiguousResolutionError(hint, build_candidates(rows, now), strategy.value)
