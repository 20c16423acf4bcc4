"""Checkpoint store.

Checkpoints are compact snapshots of a session's work state. They are
numbered per session (independently of events), size-limited, read back with
a recovery narrative rendered on the fly, and removed by age-based cleanup.

Two triggers are owned by the surrounding system and call in here:

- context pressure: ``checkpoint_on_context_pressure`` creates a checkpoint
  only once usage reaches ``context_pressure_threshold``;
- unit-of-work completion: ``checkpoint_on_work_completed``.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import Settings, get_settings
from ..core.database import CheckpointRecord, Clock, SessionRecord, as_utc, utc_now
from ..core.database.sequences import next_sequence
from ..core.errors import CheckpointNotFoundError, SessionNotFoundError, ValidationError
from ..core.models.domain import (
    Checkpoint,
    CheckpointKind,
    CheckpointPage,
    CheckpointStats,
    CheckpointView,
    CleanupReport,
    WorkState,
)
from .narrative import build_recovery_narrative

logger = logging.getLogger(__name__)


def _coerce_kind(kind: Union[CheckpointKind, str]) -> CheckpointKind:
    try:
        return CheckpointKind(kind)
    except ValueError:
        raise ValidationError(f"Unknown checkpoint kind {kind!r}", details={"kind": str(kind)}) from None


def _coerce_state(work_state: Union[WorkState, Mapping[str, Any]]) -> WorkState:
    if isinstance(work_state, WorkState):
        return work_state
    if not isinstance(work_state, Mapping):
        raise ValidationError(f"work_state must be a WorkState or mapping, got {type(work_state).__name__}")
    try:
        return WorkState.model_validate(dict(work_state))
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid work state: {e.error_count()} error(s)",
            details={"errors": e.errors(include_url=False)},
        ) from e


def serialized_size(body: Mapping[str, Any]) -> int:
    """Size in bytes of the compact JSON encoding of ``body``."""
    return len(json.dumps(body, separators=(",", ":"), sort_keys=True, default=str).encode("utf-8"))


def _to_checkpoint(row: CheckpointRecord) -> Checkpoint:
    return Checkpoint(
        id=row.id,
        session_id=row.session_id,
        kind=CheckpointKind(row.kind),
        sequence_num=row.sequence_num,
        work_state=WorkState.model_validate(row.work_state or {}),
        context_percent=row.context_percent,
        trigger=row.trigger,
        note=row.note,
        event_id=row.event_id,
        size_bytes=row.size_bytes,
        created_at=as_utc(row.created_at),
    )


@dataclass(frozen=True)
class CheckpointStore:
    """SQL-backed checkpoint store."""

    session_factory: async_sessionmaker[AsyncSession]
    settings: Settings = field(default_factory=get_settings)
    clock: Clock = utc_now

    async def create(
        self,
        session_id: str,
        kind: Union[CheckpointKind, str],
        work_state: Union[WorkState, Mapping[str, Any]],
        context_percent: Optional[int] = None,
        *,
        trigger: Optional[str] = None,
        note: Optional[str] = None,
        event_id: Optional[str] = None,
    ) -> str:
        """
        Persist a checkpoint.

        Args:
            session_id: Owning session.
            kind: What caused the checkpoint.
            work_state: State to snapshot (model or mapping).
            context_percent: Context usage at snapshot time.
            trigger: Free-form trigger label; defaults to the kind.
            note: Free-form note (manual checkpoints).
            event_id: Event that caused the checkpoint, if any.

        Returns:
            The checkpoint id.

        Raises:
            ValidationError: invalid kind/state/percent or the body exceeds ``checkpoint_max_bytes``.
            SessionNotFoundError: the session does not exist or is closed.
        """
        ckind = _coerce_kind(kind)
        state = _coerce_state(work_state)
        if context_percent is not None and not 0 <= context_percent <= 100:
            raise ValidationError("context_percent must be within 0..100", details={"context_percent": context_percent})

        now = as_utc(self.clock())
        if state.snapshot_at is None:
            state = state.model_copy(update={"snapshot_at": now})
        body = state.model_dump(mode="json", exclude_none=True)
        size = serialized_size(body)
        limit = self.settings.checkpoint_max_bytes
        if size > limit:
            raise ValidationError(
                f"Checkpoint body is {size} bytes; the limit is {limit}",
                details={"size_bytes": size, "max_bytes": limit},
            )

        checkpoint_id = str(uuid.uuid4())
        async with self.session_factory() as s:
            seq = await next_sequence(s, "checkpoint_seq", session_id, require_open=True)
            s.add(
                CheckpointRecord(
                    id=checkpoint_id,
                    session_id=session_id,
                    kind=ckind.value,
                    sequence_num=seq,
                    work_state=body,
                    context_percent=context_percent,
                    trigger=trigger or ckind.value,
                    note=note,
                    event_id=event_id,
                    size_bytes=size,
                    created_at=now,
                )
            )
            await s.commit()

        logger.info(f"Checkpoint {checkpoint_id} #{seq} ({ckind.value}, {size} bytes) for {session_id}")
        return checkpoint_id

    async def get(self, checkpoint_id: str) -> CheckpointView:
        """
        Load a checkpoint with its recovery narrative.

        Raises:
            CheckpointNotFoundError: no checkpoint has this id.
        """
        async with self.session_factory() as s:
            row = await s.get(CheckpointRecord, checkpoint_id)
            if row is None:
                raise CheckpointNotFoundError(checkpoint_id)
            checkpoint = _to_checkpoint(row)
        return CheckpointView(checkpoint=checkpoint, recovery_narrative=build_recovery_narrative(checkpoint))

    async def latest(self, session_id: str) -> Optional[Checkpoint]:
        """Newest checkpoint of a session, regardless of age."""
        stmt = (
            select(CheckpointRecord)
            .where(CheckpointRecord.session_id == session_id)
            .order_by(CheckpointRecord.sequence_num.desc())
            .limit(1)
        )
        async with self.session_factory() as s:
            row = (await s.execute(stmt)).scalars().first()
        return _to_checkpoint(row) if row is not None else None

    async def list(
        self,
        session_id: str,
        kind: Optional[Union[CheckpointKind, str]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> CheckpointPage:
        """
        List a session's checkpoints, newest first.

        Raises:
            SessionNotFoundError: the session does not exist.
            ValidationError: negative offset or unknown kind.
        """
        if offset < 0:
            raise ValidationError("offset must be >= 0", details={"offset": offset})
        n = max(1, min(limit, self.settings.max_query_limit))
        conds = [CheckpointRecord.session_id == session_id]
        if kind is not None:
            conds.append(CheckpointRecord.kind == _coerce_kind(kind).value)

        async with self.session_factory() as s:
            if await s.get(SessionRecord, session_id) is None:
                raise SessionNotFoundError(session_id)
            total = (
                await s.execute(select(func.count()).select_from(CheckpointRecord).where(*conds))
            ).scalar_one()
            rows = (
                await s.execute(
                    select(CheckpointRecord)
                    .where(*conds)
                    .order_by(CheckpointRecord.sequence_num.desc())
                    .offset(offset)
                    .limit(n)
                )
            ).scalars().all()

        return CheckpointPage(
            checkpoints=[_to_checkpoint(r) for r in rows],
            total_count=int(total),
            has_more=offset + len(rows) < total,
        )

    async def cleanup(self, max_age_days: Optional[int] = None) -> CleanupReport:
        """
        Delete checkpoints older than ``max_age_days`` (default: configured retention).

        Returns:
            How many checkpoints were deleted and how many body bytes they held.
        """
        days = self.settings.checkpoint_retention_days if max_age_days is None else max_age_days
        if days < 0:
            raise ValidationError("max_age_days must be >= 0", details={"max_age_days": days})
        cutoff = as_utc(self.clock()) - timedelta(days=days)

        async with self.session_factory() as s:
            count, freed = (
                await s.execute(
                    select(func.count(), func.coalesce(func.sum(CheckpointRecord.size_bytes), 0)).where(
                        CheckpointRecord.created_at < cutoff
                    )
                )
            ).one()
            if count:
                await s.execute(
                    delete(CheckpointRecord)
                    .where(CheckpointRecord.created_at < cutoff)
                    .execution_options(synchronize_session=False)
                )
            await s.commit()

        logger.info(f"Checkpoint cleanup: deleted={count} bytes_freed={freed} older_than={days}d")
        return CleanupReport(deleted_count=int(count), bytes_freed=int(freed), cutoff=cutoff)

    async def stats(self, session_id: str) -> CheckpointStats:
        stmt = (
            select(
                CheckpointRecord.kind,
                func.count(),
                func.coalesce(func.sum(CheckpointRecord.size_bytes), 0),
                func.max(CheckpointRecord.created_at),
            )
            .where(CheckpointRecord.session_id == session_id)
            .group_by(CheckpointRecord.kind)
        )
        async with self.session_factory() as s:
            rows = (await s.execute(stmt)).all()

        by_kind = {kind: int(n) for kind, n, _, _ in rows}
        latest = max((as_utc(ts) for _, _, _, ts in rows if ts is not None), default=None)
        return CheckpointStats(
            session_id=session_id,
            total=sum(by_kind.values()),
            by_kind=by_kind,
            total_bytes=sum(int(b) for _, _, b, _ in rows),
            latest_at=latest,
        )

    async def checkpoint_on_context_pressure(
        self,
        session_id: str,
        context_percent: int,
        work_state: Union[WorkState, Mapping[str, Any]],
    ) -> Optional[str]:
        """Create a ``context_pressure`` checkpoint once usage reaches the threshold."""
        threshold = self.settings.context_pressure_threshold
        if context_percent < threshold:
            return None
        return await self.create(
            session_id,
            CheckpointKind.context_pressure,
            work_state,
            context_percent,
            trigger=f"context>={threshold}%",
        )

    async def checkpoint_on_work_completed(
        self,
        session_id: str,
        work_state: Union[WorkState, Mapping[str, Any]],
        work_item_id: Optional[str] = None,
        *,
        context_percent: Optional[int] = None,
        event_id: Optional[str] = None,
    ) -> str:
        """Create a ``work_completed`` checkpoint for a finished unit of work."""
        return await self.create(
            session_id,
            CheckpointKind.work_completed,
            work_state,
            context_percent,
            note=f"Completed {work_item_id}" if work_item_id else None,
            event_id=event_id,
        )
