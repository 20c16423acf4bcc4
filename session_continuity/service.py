"""Service facade and wiring for the continuity engine.

Usage
-----

Application setup:

- ``runtime = await ContinuityRuntime.start(settings)`` creates the engine,
  the session factory and every store, and initializes monitoring.
- ``runtime.service`` is the ``ContinuityService`` facade producers and the
  resume entry point talk to.
- ``await runtime.close()`` drains background emissions and disposes the
  engine.

Tests that already own a session factory call ``build_continuity`` directly
and inject a frozen ``clock`` and a fake ``artifact_validator``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar, Union

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .checkpoints import CheckpointStore
from .core.config import Settings, get_settings
from .core.database import Clock, create_all, create_engine, create_sessionmaker, utc_now
from .core.errors import EventNotFoundError
from .core.models.domain import (
    CheckpointKind,
    CheckpointPage,
    CheckpointStats,
    CheckpointView,
    CleanupReport,
    CommandRecord,
    CommandType,
    Event,
    EventKind,
    EventPage,
    EventQueryFilters,
    SessionRole,
    SessionStatus,
    SupervisorSession,
    WorkState,
)
from .core.monitoring import initialize_logfire, shutdown_logfire
from .lineage import EventEmitter, EventPayload, EventStore, ReplayResult, with_parent
from .resume import (
    ArtifactValidator,
    ContextReconstructor,
    InstanceResolver,
    LocalArtifactValidator,
    ResumeEngine,
    ResumeResponse,
)
from .sessions import CommandHistory, SessionRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ContinuityService:
    """
    Public entry point of the continuity engine.

    Every component is built once by ``build_continuity`` and shared; the
    facade only delegates. Event emission through ``emit`` and the
    session-lifecycle helpers is best-effort, everything else surfaces its
    errors to the caller.
    """

    settings: Settings
    events: EventStore
    emitter: EventEmitter
    sessions: SessionRegistry
    commands: CommandHistory
    checkpoints: CheckpointStore
    resolver: InstanceResolver
    reconstructor: ContextReconstructor
    engine: ResumeEngine

    # Sessions

    async def register_session(
        self,
        project: str,
        role: Union[SessionRole, str] = SessionRole.primary,
        *,
        session_id: Optional[str] = None,
        host_machine: Optional[str] = None,
        current_work_item: Optional[str] = None,
    ) -> SupervisorSession:
        session = await self.sessions.register(
            project,
            role,
            session_id=session_id,
            host_machine=host_machine,
            current_work_item=current_work_item,
        )
        await self.emitter.emit(
            session.id,
            EventKind.session_registered,
            {"project": session.project, "role": session.role.value, "host_machine": session.host_machine},
        )
        return session

    async def heartbeat(
        self,
        session_id: str,
        *,
        context_percent: Optional[int] = None,
        current_work_item: Optional[str] = None,
    ) -> SupervisorSession:
        """
        Refresh liveness on the session record.

        No event is written: pings are frequent and the record already holds
        the latest context percent and work item.
        """
        return await self.sessions.heartbeat(
            session_id, context_percent=context_percent, current_work_item=current_work_item
        )

    async def close_session(self, session_id: str, reason: Optional[str] = None) -> SupervisorSession:
        session = await self.sessions.close(session_id)
        await self.emitter.emit(session_id, EventKind.session_closed, {"reason": reason})
        return session

    async def get_session(self, session_id: str) -> SupervisorSession:
        return await self.sessions.require(session_id)

    async def list_dormant_sessions(self, project: Optional[str] = None, limit: int = 100) -> List[SupervisorSession]:
        """Sessions that stopped heartbeating and can be resumed."""
        return await self.sessions.list_sessions(project=project, status=SessionStatus.dormant, limit=limit)

    async def record_command(
        self,
        session_id: str,
        action: str,
        *,
        command_type: Union[CommandType, str] = CommandType.explicit,
        tool_name: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None,
        result: Optional[Dict[str, Any]] = None,
        success: bool = True,
        error: Optional[str] = None,
        execution_time_ms: Optional[int] = None,
        tags: Optional[List[str]] = None,
    ) -> str:
        return await self.commands.record(
            session_id,
            action,
            command_type=command_type,
            tool_name=tool_name,
            parameters=parameters,
            result=result,
            success=success,
            error=error,
            execution_time_ms=execution_time_ms,
            tags=tags,
        )

    async def recent_commands(self, session_id: str, limit: Optional[int] = None) -> List[CommandRecord]:
        return await self.commands.recent(session_id, limit)

    # Events

    async def emit(
        self,
        session_id: str,
        kind: Union[EventKind, str],
        payload: Union[Mapping[str, Any], EventPayload, None] = None,
        *,
        parent_id: Optional[str] = None,
        duration_ms: Optional[int] = None,
        success: Optional[bool] = None,
        error: Optional[str] = None,
    ) -> Optional[str]:
        """
        Record an event without ever raising.

        Returns:
            The event id, or None when the event was dropped (the failure is logged).
        """
        return await self.emitter.emit(
            session_id,
            kind,
            payload,
            parent_id=parent_id,
            duration_ms=duration_ms,
            success=success,
            error=error,
        )

    async def append_event(
        self,
        session_id: str,
        kind: Union[EventKind, str],
        payload: Union[Mapping[str, Any], EventPayload, None] = None,
        **opts: Any,
    ) -> str:
        """Strict variant of ``emit``: validation and storage errors propagate."""
        return await self.events.append(session_id, kind, payload, **opts)

    async def with_parent(
        self,
        parent_id: str,
        fn: Callable[..., Union[T, Awaitable[T]]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Run ``fn`` with ``parent_id`` as the propagated parent of every event it emits."""
        return await with_parent(parent_id, fn, *args, **kwargs)

    async def get_event(self, event_id: str) -> Event:
        event = await self.events.get(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    async def query_events(
        self,
        session_id: str,
        filters: Optional[EventQueryFilters] = None,
        limit: Optional[int] = 100,
        offset: int = 0,
    ) -> EventPage:
        return await self.events.query(session_id, filters, limit, offset)

    async def recent_events(self, session_id: str, limit: Optional[int] = None) -> List[Event]:
        return await self.events.get_recent(session_id, limit)

    async def events_between(
        self, session_id: str, start: datetime, end: datetime, limit: Optional[int] = None
    ) -> List[Event]:
        return await self.events.get_window(session_id, start, end, limit)

    async def get_parent_chain(self, event_id: str, max_depth: int = 1000) -> List[Event]:
        return await self.events.get_parent_chain(event_id, max_depth)

    async def get_children(self, event_id: str) -> List[Event]:
        return await self.events.get_children(event_id)

    async def replay(self, session_id: str, to_sequence: Optional[int] = None) -> ReplayResult:
        return await self.events.replay(session_id, to_sequence)

    async def event_counts(self, session_id: str) -> Dict[str, int]:
        return await self.events.aggregate_by_kind(session_id)

    # Checkpoints

    async def create_checkpoint(
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
        Persist a checkpoint and record a ``checkpoint.created`` event for it.

        Args:
            session_id: Owning session (must exist and not be closed).
            kind: ``context_pressure``, ``work_completed`` or ``manual``.
            work_state: State to snapshot.
            context_percent: Context usage at snapshot time.
            trigger: Free-form trigger label.
            note: Free-form note.
            event_id: Event that caused the checkpoint.

        Returns:
            The checkpoint id.
        """
        checkpoint_id = await self.checkpoints.create(
            session_id,
            kind,
            work_state,
            context_percent,
            trigger=trigger,
            note=note,
            event_id=event_id,
        )
        await self.emitter.emit(
            session_id,
            EventKind.checkpoint_created,
            {"checkpoint_id": checkpoint_id, "checkpoint_kind": CheckpointKind(kind).value},
        )
        return checkpoint_id

    async def get_checkpoint(self, checkpoint_id: str) -> CheckpointView:
        return await self.checkpoints.get(checkpoint_id)

    async def list_checkpoints(
        self,
        session_id: str,
        kind: Optional[Union[CheckpointKind, str]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> CheckpointPage:
        return await self.checkpoints.list(session_id, kind=kind, limit=limit, offset=offset)

    async def cleanup_checkpoints(self, max_age_days: Optional[int] = None) -> CleanupReport:
        return await self.checkpoints.cleanup(max_age_days)

    async def checkpoint_stats(self, session_id: str) -> CheckpointStats:
        return await self.checkpoints.stats(session_id)

    # Resume

    async def resume(self, hint: Optional[str] = None, choice: Optional[int] = None) -> ResumeResponse:
        """Resume a dormant session; see ``ResumeEngine.resume``."""
        return await self.engine.resume(hint, choice)

    async def drain(self) -> None:
        """Wait for background emissions scheduled through ``emitter.emit_background``."""
        await self.emitter.drain()


def build_continuity(
    *,
    session_factory: async_sessionmaker[AsyncSession],
    settings: Optional[Settings] = None,
    clock: Clock = utc_now,
    artifact_validator: Optional[ArtifactValidator] = None,
) -> ContinuityService:
    """
    Construct every store and engine once and return the facade.

    Args:
        session_factory: Async session factory bound to the continuity database.
        settings: Engine settings; defaults to ``get_settings()``.
        clock: Time source shared by every component.
        artifact_validator: Artifact checker for reconstruction; defaults to the local filesystem and git.

    Returns:
        A fully wired ``ContinuityService``.
    """
    settings = settings or get_settings()
    validator = artifact_validator or LocalArtifactValidator(settings.git_timeout_seconds)

    events = EventStore(session_factory, settings, clock)
    sessions = SessionRegistry(session_factory, settings, clock)
    commands = CommandHistory(session_factory, settings, clock)
    checkpoints = CheckpointStore(session_factory, settings, clock)
    resolver = InstanceResolver(session_factory, settings, clock)
    reconstructor = ContextReconstructor(events, checkpoints, commands, validator, settings, clock)

    return ContinuityService(
        settings=settings,
        events=events,
        emitter=EventEmitter(events),
        sessions=sessions,
        commands=commands,
        checkpoints=checkpoints,
        resolver=resolver,
        reconstructor=reconstructor,
        engine=ResumeEngine(sessions, resolver, reconstructor, settings, clock),
    )


@dataclass
class ContinuityRuntime:
    """Owns the database engine behind a ``ContinuityService``."""

    db_engine: AsyncEngine
    service: ContinuityService
    monitoring: bool = field(default=False)

    @classmethod
    async def start(
        cls,
        settings: Optional[Settings] = None,
        *,
        create_schema: bool = False,
        clock: Clock = utc_now,
        artifact_validator: Optional[ArtifactValidator] = None,
    ) -> "ContinuityRuntime":
        """
        Create the engine, optionally the schema, and the wired service.

        Args:
            settings: Engine settings; defaults to ``get_settings()``.
            create_schema: Create missing tables (tests/dev; deployments run the Alembic migration).
            clock: Time source shared by every component.
            artifact_validator: Optional artifact checker override.
        """
        settings = settings or get_settings()
        db_engine = create_engine(settings.database_url)
        if create_schema:
            await create_all(db_engine)
        monitoring = initialize_logfire(settings, db_engine)
        service = build_continuity(
            session_factory=create_sessionmaker(db_engine),
            settings=settings,
            clock=clock,
            artifact_validator=artifact_validator,
        )
        logger.info(f"Continuity runtime started (database={db_engine.url.render_as_string(hide_password=True)})")
        return cls(db_engine=db_engine, service=service, monitoring=monitoring)

    async def close(self) -> None:
        await self.service.drain()
        await self.db_engine.dispose()
        if self.monitoring:
            shutdown_logfire()
        logger.info("Continuity runtime closed")
