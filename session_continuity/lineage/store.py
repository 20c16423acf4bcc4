"""Append-only event log with parent/root/depth lineage.

Usage
-----

- ``append`` validates the kind and payload, allocates the next per-session
  sequence number, derives ``root_id``/``depth`` from the parent and inserts
  the row, all in one transaction.
- Lineage reads (``get_parent_chain``, ``get_children``) are bounded: the
  chain walk is a depth-limited recursive query and children are one level
  only.
- History reads (``get_recent``, ``get_window``, ``query``) clamp ``limit``
  to ``max_query_limit`` no matter what the caller asks for.
- ``replay`` streams the log in keyset-paged batches through the pure
  reducer, so memory stays bounded by one page.

Transaction model
-----------------

Each method opens its own ``AsyncSession``; writes commit before returning,
reads never write.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from sqlalchemy import Integer, String, cast, func, literal, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import Settings, get_settings
from ..core.database import Clock, EventRecord, SessionRecord, as_utc, utc_now
from ..core.database.sequences import next_sequence
from ..core.errors import SessionNotFoundError, ValidationError
from ..core.models.domain import Event, EventKind, EventPage, EventQueryFilters
from .context import current_parent
from .payloads import EventPayload, validate_payload
from .replay import ReplayResult, ReplayState, apply_event

logger = logging.getLogger(__name__)


def _new_event_id() -> str:
    return str(uuid.uuid4())


def _kind_exclusion(kinds: Sequence[Union[EventKind, str]]) -> List[Any]:
    if not kinds:
        return []
    return [EventRecord.kind.not_in([str(getattr(k, "value", k)) for k in kinds])]


def _to_event(row: EventRecord) -> Event:
    return Event(
        id=row.id,
        session_id=row.session_id,
        kind=row.kind,
        sequence_num=row.sequence_num,
        timestamp=as_utc(row.timestamp),
        payload=row.payload or {},
        parent_id=row.parent_id,
        root_id=row.root_id,
        depth=row.depth,
        duration_ms=row.duration_ms,
        success=row.success,
        error=row.error,
    )


@dataclass(frozen=True)
class EventStore:
    """SQL-backed event log."""

    session_factory: async_sessionmaker[AsyncSession]
    settings: Settings = field(default_factory=get_settings)
    clock: Clock = utc_now

    def _clamp(self, limit: Optional[int], default: Optional[int] = None) -> int:
        cap = self.settings.max_query_limit
        if limit is None:
            limit = default if default is not None else cap
        return max(1, min(int(limit), cap))

    async def append(
        self,
        session_id: str,
        kind: Union[EventKind, str],
        payload: Union[Mapping[str, Any], EventPayload, None] = None,
        *,
        parent_id: Optional[str] = None,
        duration_ms: Optional[int] = None,
        success: Optional[bool] = None,
        error: Optional[str] = None,
    ) -> str:
        """
        Append one event to a session's log.

        Args:
            session_id: Owning session.
            kind: Event kind.
            payload: Kind-specific payload.
            parent_id: Explicit parent; defaults to the propagated parent, if any.
            duration_ms: Optional duration of the action.
            success: Optional outcome flag.
            error: Optional error text.

        Returns:
            The new event id.

        Raises:
            ValidationError: malformed kind/payload, unknown parent, or lineage too deep.
            SessionNotFoundError: the session does not exist.
        """
        kind_enum, data = validate_payload(kind, payload)
        if duration_ms is not None and duration_ms < 0:
            raise ValidationError("duration_ms must be >= 0", details={"duration_ms": duration_ms})

        effective_parent = parent_id if parent_id is not None else current_parent()
        event_id = _new_event_id()
        max_depth = self.settings.max_lineage_depth

        async with self.session_factory() as s:
            seq = await next_sequence(s, "event_seq", session_id)

            if effective_parent is None:
                root_id, depth = event_id, 0
            else:
                parent = (
                    await s.execute(
                        select(EventRecord.root_id, EventRecord.depth).where(EventRecord.id == effective_parent)
                    )
                ).one_or_none()
                if parent is None:
                    raise ValidationError(
                        f"Parent event not found: {effective_parent}",
                        details={"parent_id": effective_parent},
                    )
                if parent.depth + 1 >= max_depth:
                    raise ValidationError(
                        f"Lineage depth limit {max_depth} reached under parent {effective_parent}",
                        details={"parent_id": effective_parent, "max_depth": max_depth},
                    )
                root_id, depth = parent.root_id, parent.depth + 1

            s.add(
                EventRecord(
                    id=event_id,
                    session_id=session_id,
                    kind=kind_enum.value,
                    sequence_num=seq,
                    timestamp=as_utc(self.clock()),
                    payload=data,
                    parent_id=effective_parent,
                    root_id=root_id,
                    depth=depth,
                    duration_ms=duration_ms,
                    success=success,
                    error=error,
                )
            )
            await s.commit()

        logger.debug(f"Appended {kind_enum.value} seq={seq} depth={depth} to {session_id}")
        return event_id

    async def get(self, event_id: str) -> Optional[Event]:
        async with self.session_factory() as s:
            row = await s.get(EventRecord, event_id)
            return _to_event(row) if row is not None else None

    async def get_parent_chain(self, event_id: str, max_depth: int = 1000) -> List[Event]:
        """
        Walk from ``event_id`` up to its root.

        The walk is a recursive CTE whose hop counter stops it after
        ``min(max_depth, max_lineage_depth)`` rows, so it terminates even if
        the stored data ever contained a cycle.

        Args:
            event_id: Starting event.
            max_depth: Maximum number of events to return.

        Returns:
            Events ordered from ``event_id`` to its root; empty if the id is unknown.
        """
        if max_depth < 1:
            raise ValidationError("max_depth must be >= 1", details={"max_depth": max_depth})
        max_hops = min(max_depth, self.settings.max_lineage_depth)

        chain = (
            select(
                EventRecord.id.label("event_id"),
                EventRecord.parent_id.label("parent_id"),
                literal(0, Integer).label("hops"),
            )
            .where(EventRecord.id == event_id)
            .cte("parent_chain", recursive=True)
        )
        prev = chain.alias("prev")
        chain = chain.union_all(
            select(EventRecord.id, EventRecord.parent_id, prev.c.hops + 1)
            .where(EventRecord.id == prev.c.parent_id)
            .where(prev.c.hops + 1 < max_hops)
        )
        stmt = (
            select(EventRecord)
            .join(chain, EventRecord.id == chain.c.event_id)
            .order_by(chain.c.hops)
            .limit(max_hops)
        )

        async with self.session_factory() as s:
            rows = (await s.execute(stmt)).scalars().all()
        return [_to_event(r) for r in rows]

    async def get_children(self, event_id: str) -> List[Event]:
        """Direct children of ``event_id`` (one level), in emission order."""
        stmt = (
            select(EventRecord)
            .where(EventRecord.parent_id == event_id)
            .order_by(EventRecord.timestamp, EventRecord.sequence_num)
            .limit(self.settings.max_query_limit)
        )
        async with self.session_factory() as s:
            rows = (await s.execute(stmt)).scalars().all()
        return [_to_event(r) for r in rows]

    async def get_recent(
        self,
        session_id: str,
        limit: Optional[int] = None,
        *,
        exclude_kinds: Sequence[Union[EventKind, str]] = (),
    ) -> List[Event]:
        """
        Most recent ``limit`` events of a session, ascending by sequence.

        Args:
            session_id: Session to read.
            limit: Number of events, clamped to ``[1, max_query_limit]``.
            exclude_kinds: Kinds skipped before the limit is applied, so
                frequent low-value events do not crowd out the window.
        """
        n = self._clamp(limit, self.settings.default_recent_limit)
        stmt = (
            select(EventRecord)
            .where(EventRecord.session_id == session_id, *_kind_exclusion(exclude_kinds))
            .order_by(EventRecord.sequence_num.desc())
            .limit(n)
        )
        async with self.session_factory() as s:
            rows = (await s.execute(stmt)).scalars().all()
        return [_to_event(r) for r in reversed(rows)]

    async def get_window(
        self,
        session_id: str,
        start: datetime,
        end: datetime,
        limit: Optional[int] = None,
    ) -> List[Event]:
        """Events with ``start <= timestamp <= end``, ascending, capped."""
        if start > end:
            raise ValidationError("start must not be after end", details={"start": start, "end": end})
        start, end = as_utc(start), as_utc(end)
        stmt = (
            select(EventRecord)
            .where(
                EventRecord.session_id == session_id,
                EventRecord.timestamp >= start,
                EventRecord.timestamp <= end,
            )
            .order_by(EventRecord.sequence_num)
            .limit(self._clamp(limit))
        )
        async with self.session_factory() as s:
            rows = (await s.execute(stmt)).scalars().all()
        return [_to_event(r) for r in rows]

    async def query(
        self,
        session_id: str,
        filters: Optional[EventQueryFilters] = None,
        limit: Optional[int] = 100,
        offset: int = 0,
    ) -> EventPage:
        """
        Filtered, paginated read of a session's log.

        Args:
            session_id: Session to read.
            filters: Optional kinds, time range, keyword and root filters.
            limit: Page size, clamped to ``max_query_limit``.
            offset: Rows to skip.

        Returns:
            ``EventPage`` with the page, the total match count and ``has_more``.
        """
        if offset < 0:
            raise ValidationError("offset must be >= 0", details={"offset": offset})
        n = self._clamp(limit)
        f = filters or EventQueryFilters()

        conds: List[Any] = [EventRecord.session_id == session_id]
        if f.kinds:
            conds.append(EventRecord.kind.in_([k.value for k in f.kinds]))
        if f.start is not None:
            conds.append(EventRecord.timestamp >= as_utc(f.start))
        if f.end is not None:
            conds.append(EventRecord.timestamp <= as_utc(f.end))
        if f.root_id is not None:
            conds.append(EventRecord.root_id == f.root_id)
        if f.keyword:
            needle = f.keyword.lower()
            conds.append(
                or_(
                    func.lower(cast(EventRecord.payload, String)).contains(needle, autoescape=True),
                    func.lower(EventRecord.error).contains(needle, autoescape=True),
                )
            )

        async with self.session_factory() as s:
            total = (await s.execute(select(func.count()).select_from(EventRecord).where(*conds))).scalar_one()
            rows = (
                await s.execute(
                    select(EventRecord).where(*conds).order_by(EventRecord.sequence_num).offset(offset).limit(n)
                )
            ).scalars().all()

        return EventPage(
            events=[_to_event(r) for r in rows],
            total_count=int(total),
            has_more=offset + len(rows) < total,
            limit=n,
            offset=offset,
        )

    async def count(self, session_id: str, *, exclude_kinds: Sequence[Union[EventKind, str]] = ()) -> int:
        stmt = (
            select(func.count())
            .select_from(EventRecord)
            .where(EventRecord.session_id == session_id, *_kind_exclusion(exclude_kinds))
        )
        async with self.session_factory() as s:
            total = (await s.execute(stmt)).scalar_one()
        return int(total)

    async def aggregate_by_kind(self, session_id: str) -> Dict[str, int]:
        """Number of events per kind for a session."""
        stmt = (
            select(EventRecord.kind, func.count())
            .where(EventRecord.session_id == session_id)
            .group_by(EventRecord.kind)
            .order_by(EventRecord.kind)
        )
        async with self.session_factory() as s:
            rows = (await s.execute(stmt)).all()
        return {kind: int(n) for kind, n in rows}

    async def replay(self, session_id: str, to_sequence: Optional[int] = None) -> ReplayResult:
        """
        Fold a session's events (up to ``to_sequence``) into a ``ReplayState``.

        Rows are read in keyset-paged batches of ``max_query_limit``; only one
        batch is held in memory at a time.

        Raises:
            SessionNotFoundError: the session does not exist.
        """
        page = self.settings.max_query_limit
        state = ReplayState()
        last_seq = 0

        async with self.session_factory() as s:
            if await s.get(SessionRecord, session_id) is None:
                raise SessionNotFoundError(session_id)
            while True:
                stmt = (
                    select(EventRecord)
                    .where(EventRecord.session_id == session_id, EventRecord.sequence_num > last_seq)
                    .order_by(EventRecord.sequence_num)
                    .limit(page)
                )
                if to_sequence is not None:
                    stmt = stmt.where(EventRecord.sequence_num <= to_sequence)
                rows = (await s.execute(stmt)).scalars().all()
                if not rows:
                    break
                for row in rows:
                    state = apply_event(state, _to_event(row))
                last_seq = rows[-1].sequence_num
                # Drop the batch from the identity map before fetching the next.
                s.expunge_all()
                if len(rows) < page:
                    break

        return ReplayResult(state=state, events_replayed=state.events_replayed, to_sequence=to_sequence)
