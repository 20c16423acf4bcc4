"""Session registry, identifiers and raw command history."""

from .command_log import CommandHistory, redact
from .ids import generate_session_id, parse_session_id, validate_project, validate_session_id
from .registry import SessionRegistry, derive_status

__all__ = [
    "CommandHistory",
    "SessionRegistry",
    "derive_status",
    "generate_session_id",
    "parse_session_id",
    "redact",
    "validate_project",
    "validate_session_id",
]
