"""
Command log entity.

Raw history of explicit commands and tool calls, used as the last-resort
reconstruction source when a session has neither checkpoints nor events.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, Index, Text
from sqlmodel import Field

from ..base import Base, JSONType


class CommandLogRecord(Base, table=True):
    """Entity for recorded commands and tool invocations.

    Table: continuity_command_log
    """

    __tablename__ = "continuity_command_log"
    __table_args__ = (Index("ix_continuity_command_log_session_created", "session_id", "created_at"),)

    id: str = Field(primary_key=True, max_length=64)
    session_id: str = Field(foreign_key="continuity_sessions.id", max_length=64, index=True)
    command_type: str = Field(max_length=16)
    action: str = Field(max_length=128)
    tool_name: Optional[str] = Field(default=None, max_length=128)
    parameters: Dict[str, Any] = Field(default_factory=dict, sa_type=JSONType)
    result: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSONType)
    success: bool = Field(default=True)
    error: Optional[str] = Field(default=None, sa_type=Text)
    execution_time_ms: Optional[int] = Field(default=None)
    tags: List[str] = Field(default_factory=list, sa_type=JSONType)
    created_at: datetime = Field(sa_type=DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"CommandLogRecord(id={self.id}, session_id={self.session_id}, action={self.action})"
