"""
Database entities for the continuity store.

- sessions.py: Supervisor sessions and their sequence counters
- events.py: Append-only lineage-tracked events
- checkpoints.py: Work-state snapshots
- command_log.py: Raw command and tool history
"""

from .checkpoints import CheckpointRecord
from .command_log import CommandLogRecord
from .events import EventRecord
from .sessions import SessionRecord

__all__ = [
    "CheckpointRecord",
    "CommandLogRecord",
    "EventRecord",
    "SessionRecord",
]
