"""Best-effort event emission for producers.

Producers call ``EventEmitter.emit`` from inside their primary workflow.
Emission never raises: validation and storage failures are logged, reported
to monitoring and turned into a ``None`` result so the caller's own action
is never aborted by the audit trail.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Mapping, Optional, Set, Union

from ..core.models.domain import EventKind
from ..core.monitoring import log_emission_failure
from .context import parent_scope
from .payloads import EventPayload
from .store import EventStore

logger = logging.getLogger(__name__)

PayloadArg = Union[Mapping[str, Any], EventPayload, None]


class EventEmitter:
    """Fire-and-forget facade over ``EventStore.append``."""

    def __init__(self, store: EventStore) -> None:
        self._store = store
        self._pending: Set["asyncio.Task[Optional[str]]"] = set()

    async def emit(
        self,
        session_id: str,
        kind: Union[EventKind, str],
        payload: PayloadArg = None,
        *,
        parent_id: Optional[str] = None,
        duration_ms: Optional[int] = None,
        success: Optional[bool] = None,
        error: Optional[str] = None,
    ) -> Optional[str]:
        """
        Append an event, swallowing any failure.

        Returns:
            The event id, or None if the event could not be recorded.
        """
        try:
            return await self._store.append(
                session_id,
                kind,
                payload,
                parent_id=parent_id,
                duration_ms=duration_ms,
                success=success,
                error=error,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_emission_failure(session_id, str(getattr(kind, "value", kind)), e)
            return None

    def emit_background(
        self,
        session_id: str,
        kind: Union[EventKind, str],
        payload: PayloadArg = None,
        **opts: Any,
    ) -> "asyncio.Task[Optional[str]]":
        """Schedule ``emit`` without awaiting it; the propagated parent is captured now."""
        task = asyncio.get_running_loop().create_task(self.emit(session_id, kind, payload, **opts))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every background emission scheduled so far."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @asynccontextmanager
    async def span(
        self,
        session_id: str,
        kind: Union[EventKind, str],
        payload: PayloadArg = None,
        **opts: Any,
    ) -> AsyncIterator[Optional[str]]:
        """
        Emit an event and make it the propagated parent for the body.

        If the event could not be recorded the body still runs, with the
        enclosing scope's parent left in place.
        """
        event_id = await self.emit(session_id, kind, payload, **opts)
        if event_id is None:
            yield None
            return
        with parent_scope(event_id):
            yield event_id
