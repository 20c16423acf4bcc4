"""
Event log entity.

Append-only: rows are inserted once and never updated. Lookups go through the
primary key (event id), ``parent_id`` (children) and the unique
``(session_id, sequence_num)`` pair (ordered session history).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Index, Text, UniqueConstraint
from sqlmodel import Field

from ..base import Base, JSONType


class EventRecord(Base, table=True):
    """Entity for lineage-tracked events.

    Table: continuity_events
    """

    __tablename__ = "continuity_events"
    __table_args__ = (
        UniqueConstraint("session_id", "sequence_num", name="uq_continuity_events_session_sequence"),
        Index("ix_continuity_events_session_timestamp", "session_id", "timestamp"),
    )

    id: str = Field(primary_key=True, max_length=64)
    session_id: str = Field(foreign_key="continuity_sessions.id", max_length=64, index=True)
    kind: str = Field(max_length=64, index=True)
    sequence_num: int
    timestamp: datetime = Field(sa_type=DateTime(timezone=True))
    payload: Dict[str, Any] = Field(default_factory=dict, sa_type=JSONType)

    # Lineage
    parent_id: Optional[str] = Field(default=None, max_length=64, index=True)
    root_id: str = Field(max_length=64, index=True)
    depth: int = Field(default=0)

    # Outcome
    duration_ms: Optional[int] = Field(default=None)
    success: Optional[bool] = Field(default=None)
    error: Optional[str] = Field(default=None, sa_type=Text)

    def __repr__(self) -> str:
        return f"EventRecord(id={self.id}, session_id={self.session_id}, kind={self.kind}, seq={self.sequence_num})"
