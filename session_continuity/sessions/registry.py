"""Session registry: registration, heartbeats and derived liveness.

A session is *active* while its last heartbeat is within the freshness
window, *dormant* afterwards and *closed* once ``close`` was called. The
status is computed on every read; nothing but the heartbeat timestamp is
stored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import Settings, get_settings
from ..core.database import Clock, SessionRecord, as_utc, utc_now
from ..core.errors import SessionNotFoundError, ValidationError
from ..core.models.domain import SessionRole, SessionStatus, SupervisorSession
from .ids import coerce_role, generate_session_id, validate_project, validate_session_id

logger = logging.getLogger(__name__)


def derive_status(record: SessionRecord, now: datetime, window_seconds: int) -> SessionStatus:
    if record.closed_at is not None:
        return SessionStatus.closed
    age = (now - as_utc(record.last_heartbeat)).total_seconds()
    return SessionStatus.active if age < window_seconds else SessionStatus.dormant


def to_session(record: SessionRecord, now: datetime, window_seconds: int) -> SupervisorSession:
    last = as_utc(record.last_heartbeat)
    return SupervisorSession(
        id=record.id,
        project=record.project,
        role=SessionRole(record.role),
        host_machine=record.host_machine,
        current_work_item=record.current_work_item,
        context_percent=record.context_percent,
        last_heartbeat=last,
        created_at=as_utc(record.created_at),
        closed_at=as_utc(record.closed_at),
        status=derive_status(record, now, window_seconds),
        seconds_since_heartbeat=max(0.0, (now - last).total_seconds()),
    )


def _check_percent(context_percent: Optional[int]) -> None:
    if context_percent is not None and not 0 <= context_percent <= 100:
        raise ValidationError("context_percent must be within 0..100", details={"context_percent": context_percent})


@dataclass(frozen=True)
class SessionRegistry:
    """SQL-backed registry of supervisor sessions."""

    session_factory: async_sessionmaker[AsyncSession]
    settings: Settings = field(default_factory=get_settings)
    clock: Clock = utc_now

    @property
    def window_seconds(self) -> int:
        return self.settings.freshness_window_seconds

    def freshness_cutoff(self, now: Optional[datetime] = None) -> datetime:
        """Heartbeats after this instant count as active."""
        return (now or as_utc(self.clock())) - timedelta(seconds=self.window_seconds)

    async def register(
        self,
        project: str,
        role: Union[SessionRole, str] = SessionRole.primary,
        *,
        session_id: Optional[str] = None,
        host_machine: Optional[str] = None,
        current_work_item: Optional[str] = None,
    ) -> SupervisorSession:
        """
        Create a new session with a fresh heartbeat.

        Args:
            project: Project tag.
            role: Session role.
            session_id: Explicit id; generated when omitted.
            host_machine: Host the session runs on.
            current_work_item: Work item the session starts on.

        Returns:
            The registered session (status ``active``).

        Raises:
            ValidationError: invalid project/role/id, or the id is already taken.
        """
        validate_project(project)
        role = coerce_role(role)
        now = as_utc(self.clock())
        sid = validate_session_id(session_id) if session_id else generate_session_id(project, role, now)

        record = SessionRecord(
            id=sid,
            project=project,
            role=role.value,
            host_machine=host_machine,
            current_work_item=current_work_item,
            context_percent=0,
            last_heartbeat=now,
            created_at=now,
        )
        async with self.session_factory() as s:
            if await s.get(SessionRecord, sid) is not None:
                raise ValidationError(f"Session id already registered: {sid}", details={"session_id": sid})
            s.add(record)
            try:
                await s.commit()
            except IntegrityError as e:
                raise ValidationError(f"Session id already registered: {sid}", details={"session_id": sid}) from e

        logger.info(f"Registered session {sid} (project={project}, role={role.value})")
        return to_session(record, now, self.window_seconds)

    async def heartbeat(
        self,
        session_id: str,
        *,
        context_percent: Optional[int] = None,
        current_work_item: Optional[str] = None,
    ) -> SupervisorSession:
        """Refresh a session's liveness and optionally its context usage / work item."""
        _check_percent(context_percent)
        now = as_utc(self.clock())
        async with self.session_factory() as s:
            row = await s.get(SessionRecord, session_id)
            if row is None or row.closed_at is not None:
                raise SessionNotFoundError(session_id)
            row.last_heartbeat = now
            if context_percent is not None:
                row.context_percent = context_percent
            if current_work_item is not None:
                row.current_work_item = current_work_item
            await s.commit()
            return to_session(row, now, self.window_seconds)

    async def get(self, session_id: str) -> Optional[SupervisorSession]:
        async with self.session_factory() as s:
            row = await s.get(SessionRecord, session_id)
            return to_session(row, as_utc(self.clock()), self.window_seconds) if row is not None else None

    async def require(self, session_id: str) -> SupervisorSession:
        session = await self.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def list_sessions(
        self,
        project: Optional[str] = None,
        status: Optional[SessionStatus] = None,
        limit: int = 100,
    ) -> List[SupervisorSession]:
        """List sessions, most recent heartbeat first."""
        now = as_utc(self.clock())
        cutoff = self.freshness_cutoff(now)
        stmt = select(SessionRecord)
        if project is not None:
            stmt = stmt.where(SessionRecord.project == project)
        if status == SessionStatus.closed:
            stmt = stmt.where(SessionRecord.closed_at.is_not(None))
        elif status == SessionStatus.active:
            stmt = stmt.where(SessionRecord.closed_at.is_(None), SessionRecord.last_heartbeat > cutoff)
        elif status == SessionStatus.dormant:
            stmt = stmt.where(SessionRecord.closed_at.is_(None), SessionRecord.last_heartbeat <= cutoff)
        stmt = stmt.order_by(SessionRecord.last_heartbeat.desc(), SessionRecord.id).limit(
            max(1, min(limit, self.settings.max_query_limit))
        )
        async with self.session_factory() as s:
            rows = (await s.execute(stmt)).scalars().all()
        return [to_session(r, now, self.window_seconds) for r in rows]

    async def close(self, session_id: str) -> SupervisorSession:
        """Mark a session closed; closed sessions are never resume targets."""
        now = as_utc(self.clock())
        async with self.session_factory() as s:
            row = await s.get(SessionRecord, session_id)
            if row is None:
                raise SessionNotFoundError(session_id)
            if row.closed_at is None:
                row.closed_at = now
                await s.commit()
            logger.info(f"Closed session {session_id}")
            return to_session(row, now, self.window_seconds)

    def status_of(self, session: SupervisorSession) -> SessionStatus:
        """Liveness of an already-loaded session as of now."""
        if session.closed_at is not None:
            return SessionStatus.closed
        age = (as_utc(self.clock()) - session.last_heartbeat).total_seconds()
        return SessionStatus.active if age < self.window_seconds else SessionStatus.dormant
