"""
Persistence layer for the continuity engine.

Structure:
- entities/: SQLModel table definitions
- base.py: Shared SQLModel base and JSON column type
- utils.py: Engine, session factory and schema helpers
"""

from .base import Base, JSONType
from .entities import CheckpointRecord, CommandLogRecord, EventRecord, SessionRecord
from .utils import (
    Clock,
    as_utc,
    create_all,
    create_engine,
    create_sessionmaker,
    drop_all,
    utc_now,
)

__all__ = [
    "Base",
    "CheckpointRecord",
    "Clock",
    "CommandLogRecord",
    "EventRecord",
    "JSONType",
    "SessionRecord",
    "as_utc",
    "create_all",
    "create_engine",
    "create_sessionmaker",
    "drop_all",
    "utc_now",
]
