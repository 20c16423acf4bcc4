"""Per-session sequence allocation.

Each session row carries one counter per numbered stream (``event_seq``,
``checkpoint_seq``). Allocation is a single ``UPDATE ... SET n = n + 1``
followed by a read of the new value, inside the caller's transaction:

- the row lock taken by the UPDATE serializes writers of the same session;
- writers of different sessions touch different rows and do not contend;
- if the caller's insert fails the whole transaction rolls back, counter
  included, so the stream never shows a gap.
"""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import SessionNotFoundError
from .entities import SessionRecord


async def next_sequence(s: AsyncSession, counter: str, session_id: str, *, require_open: bool = False) -> int:
    """
    Allocate the next number of ``counter`` for ``session_id``.

    Args:
        s: Session with an open (or auto-begun) transaction.
        counter: Column name on ``SessionRecord`` (``event_seq`` or ``checkpoint_seq``).
        session_id: Owning session.
        require_open: Reject sessions that have been closed.

    Returns:
        The allocated sequence number (1-based).

    Raises:
        SessionNotFoundError: the session does not exist (or is closed when ``require_open``).
    """
    column = getattr(SessionRecord, counter)
    await s.execute(
        update(SessionRecord)
        .where(SessionRecord.id == session_id)
        .values({counter: column + 1})
        .execution_options(synchronize_session=False)
    )
    row = (
        await s.execute(select(column, SessionRecord.closed_at).where(SessionRecord.id == session_id))
    ).one_or_none()
    if row is None:
        raise SessionNotFoundError(session_id)
    if require_open and row[1] is not None:
        raise SessionNotFoundError(session_id, f"Session {session_id} is closed")
    return int(row[0])
