"""
Checkpoint entity.

Checkpoints are compact snapshots of a session's work state, numbered by a
per-session sequence independent of the event log.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Text, UniqueConstraint
from sqlmodel import Field

from ..base import Base, JSONType


class CheckpointRecord(Base, table=True):
    """Entity for session checkpoints.

    Table: continuity_checkpoints
    """

    __tablename__ = "continuity_checkpoints"
    __table_args__ = (
        UniqueConstraint("session_id", "sequence_num", name="uq_continuity_checkpoints_session_sequence"),
    )

    id: str = Field(primary_key=True, max_length=64)
    session_id: str = Field(foreign_key="continuity_sessions.id", max_length=64, index=True)
    kind: str = Field(max_length=32, index=True)
    sequence_num: int
    work_state: Dict[str, Any] = Field(sa_type=JSONType)
    context_percent: Optional[int] = Field(default=None)

    # Metadata
    trigger: Optional[str] = Field(default=None, max_length=64)
    note: Optional[str] = Field(default=None, sa_type=Text)
    event_id: Optional[str] = Field(default=None, max_length=64)
    size_bytes: int = Field(default=0)

    created_at: datetime = Field(sa_type=DateTime(timezone=True), index=True)

    def __repr__(self) -> str:
        return f"CheckpointRecord(id={self.id}, session_id={self.session_id}, kind={self.kind})"
