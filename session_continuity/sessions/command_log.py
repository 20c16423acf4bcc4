"""Raw command and tool history.

The command log is the reconstruction source of last resort: when a session
has neither checkpoints nor events, its last few recorded commands still say
roughly what it was doing. Parameter values under secret-looking keys are
redacted before they are stored.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import Settings, get_settings
from ..core.database import Clock, CommandLogRecord, SessionRecord, as_utc, utc_now
from ..core.errors import SessionNotFoundError, ValidationError
from ..core.models.domain import CommandRecord, CommandType

REDACTED = "[REDACTED]"
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
# Matched against snake_cased keys. A bare "token" only counts as the last
# word, so access_token is masked but max_tokens and token_count are not.
_SECRET_KEY = re.compile(
    r"(?<![a-z0-9])(passw(or)?d|passphrase|secrets?|api_?key|credentials?|authorization|private_?key)(?![a-z0-9])"
    r"|(?<![a-z0-9])token$"
)


def is_secret_key(key: Any) -> bool:
    """Whether a parameter name looks like it holds a secret."""
    normalized = _NON_ALNUM.sub("_", _CAMEL_BOUNDARY.sub("_", str(key)).lower())
    return bool(_SECRET_KEY.search(normalized))


def redact(value: Any) -> Any:
    """Return ``value`` with secret-looking mapping entries replaced."""
    if isinstance(value, dict):
        return {k: (REDACTED if is_secret_key(k) else redact(v)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value


def _to_record(row: CommandLogRecord) -> CommandRecord:
    return CommandRecord(
        id=row.id,
        session_id=row.session_id,
        command_type=CommandType(row.command_type),
        action=row.action,
        tool_name=row.tool_name,
        parameters=row.parameters or {},
        result=row.result,
        success=row.success,
        error=row.error,
        execution_time_ms=row.execution_time_ms,
        tags=list(row.tags or []),
        created_at=as_utc(row.created_at),
    )


@dataclass(frozen=True)
class CommandHistory:
    """SQL-backed command log."""

    session_factory: async_sessionmaker[AsyncSession]
    settings: Settings = field(default_factory=get_settings)
    clock: Clock = utc_now

    async def record(
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
        """
        Record one command or tool call.

        Returns:
            The id of the new row.

        Raises:
            ValidationError: empty action or unknown command type.
            SessionNotFoundError: the session does not exist.
        """
        if not action or not action.strip():
            raise ValidationError("action must not be empty")
        try:
            ctype = CommandType(command_type)
        except ValueError:
            raise ValidationError(f"Unknown command type {command_type!r}") from None

        row = CommandLogRecord(
            id=str(uuid.uuid4()),
            session_id=session_id,
            command_type=ctype.value,
            action=action.strip(),
            tool_name=tool_name,
            parameters=redact(parameters or {}),
            result=redact(result) if result is not None else None,
            success=success,
            error=error,
            execution_time_ms=execution_time_ms,
            tags=list(tags or []),
            created_at=as_utc(self.clock()),
        )
        async with self.session_factory() as s:
            if await s.get(SessionRecord, session_id) is None:
                raise SessionNotFoundError(session_id)
            s.add(row)
            await s.commit()
        return row.id

    async def recent(self, session_id: str, limit: Optional[int] = None) -> List[CommandRecord]:
        """Most recent commands of a session, oldest first."""
        n = limit if limit is not None else self.settings.command_history_window
        n = max(1, min(n, self.settings.max_query_limit))
        stmt = (
            select(CommandLogRecord)
            .where(CommandLogRecord.session_id == session_id)
            .order_by(CommandLogRecord.created_at.desc(), CommandLogRecord.id.desc())
            .limit(n)
        )
        async with self.session_factory() as s:
            rows = (await s.execute(stmt)).scalars().all()
        return [_to_record(r) for r in reversed(rows)]
