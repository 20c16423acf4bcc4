"""Human-recognizable session identifiers.

Generated ids look like ``{project}-{PS|MS}-{6 hex}``: the project tag, the
role tag and a short suffix taken from a sha256 over the project, role,
creation time and random bytes.
"""

from __future__ import annotations

import hashlib
import re
import secrets
from datetime import datetime
from typing import NamedTuple, Optional, Union

from ..core.errors import ValidationError
from ..core.models.domain import SessionRole

PROJECT_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9-]{0,63}$")
SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,63}$")
_GENERATED_ID = re.compile(r"^(?P<project>[A-Za-z0-9-]+)-(?P<role>PS|MS)-(?P<suffix>[0-9a-f]{6})$")


class ParsedSessionId(NamedTuple):
    project: str
    role: SessionRole
    suffix: str


def validate_project(project: str) -> str:
    if not isinstance(project, str) or not PROJECT_PATTERN.match(project):
        raise ValidationError(
            f"Invalid project tag {project!r}: use letters, digits and '-', at most 64 characters",
            details={"project": project},
        )
    return project


def validate_session_id(session_id: str) -> str:
    if not isinstance(session_id, str) or not SESSION_ID_PATTERN.match(session_id):
        raise ValidationError(f"Invalid session id {session_id!r}", details={"session_id": session_id})
    return session_id


def coerce_role(role: Union[SessionRole, str]) -> SessionRole:
    try:
        return SessionRole(role)
    except ValueError:
        try:
            return SessionRole[str(role)]
        except KeyError:
            raise ValidationError(f"Unknown session role {role!r}", details={"role": str(role)}) from None


def generate_session_id(project: str, role: Union[SessionRole, str], created_at: datetime) -> str:
    """Build a new id for ``project``; the suffix is random, so repeated calls differ."""
    validate_project(project)
    role = coerce_role(role)
    seed = f"{project}:{role.value}:{created_at.isoformat()}:{secrets.token_hex(8)}"
    suffix = hashlib.sha256(seed.encode("utf-8")).hexdigest()[:6]
    session_id = f"{project}-{role.value}-{suffix}"
    if len(session_id) > 64:
        # Long project tags still produce a valid id.
        session_id = f"{project[: 64 - len(suffix) - 4]}-{role.value}-{suffix}"
    return session_id


def parse_session_id(session_id: str) -> Optional[ParsedSessionId]:
    """Split a generated id into its parts; None for ids not in generated form."""
    m = _GENERATED_ID.match(session_id)
    if m is None:
        return None
    return ParsedSessionId(m.group("project"), SessionRole(m.group("role")), m.group("suffix"))
