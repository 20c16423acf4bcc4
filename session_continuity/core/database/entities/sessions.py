"""
Supervisor session entity.

A session row owns its events, checkpoints and command log rows. Liveness is
never stored: it is derived from ``last_heartbeat`` at read time.

The ``event_seq`` and ``checkpoint_seq`` counters are the per-session
sequence sources; stores bump them with a single ``UPDATE`` inside the same
transaction as the insert they number.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field

from ..base import Base


class SessionRecord(Base, table=True):
    """Entity for supervisor sessions.

    Table: continuity_sessions
    """

    __tablename__ = "continuity_sessions"

    id: str = Field(primary_key=True, max_length=64)
    project: str = Field(max_length=64, index=True)
    role: str = Field(max_length=8)
    host_machine: Optional[str] = Field(default=None, max_length=128)
    current_work_item: Optional[str] = Field(default=None, max_length=256, index=True)
    context_percent: int = Field(default=0)

    # Sequence counters
    event_seq: int = Field(default=0)
    checkpoint_seq: int = Field(default=0)

    last_heartbeat: datetime = Field(sa_type=DateTime(timezone=True), index=True)
    created_at: datetime = Field(sa_type=DateTime(timezone=True))
    closed_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"SessionRecord(id={self.id}, project={self.project}, role={self.role})"
