"""Continuity schema: sessions, events, checkpoints and command log

Revision ID: 20261018_000000
Revises: None
Create Date: 2026-10-18 00:00:00.000000

Creates the four tables behind the continuity engine:
- continuity_sessions (registry, heartbeats and per-session sequence counters)
- continuity_events (append-only lineage-tracked event log)
- continuity_checkpoints (work-state snapshots)
- continuity_command_log (raw command and tool history)

Revision format: YYYYMMDD_HHMMSS_description

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261018_000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(JSONB(), "postgresql")


def upgrade() -> None:
    """Create all continuity tables."""

    op.create_table(
        "continuity_sessions",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("project", sa.String(64), nullable=False),
        sa.Column("role", sa.String(8), nullable=False),
        sa.Column("host_machine", sa.String(128), nullable=True),
        sa.Column("current_work_item", sa.String(256), nullable=True),
        sa.Column("context_percent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("event_seq", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("checkpoint_seq", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_heartbeat", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_continuity_sessions_project", "project"),
        sa.Index("ix_continuity_sessions_current_work_item", "current_work_item"),
        sa.Index("ix_continuity_sessions_last_heartbeat", "last_heartbeat"),
    )

    op.create_table(
        "continuity_events",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("session_id", sa.String(64), nullable=False),
        sa.Column("kind", sa.String(64), nullable=False),
        sa.Column("sequence_num", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payload", JSON, nullable=False, server_default="{}"),
        sa.Column("parent_id", sa.String(64), nullable=True),
        sa.Column("root_id", sa.String(64), nullable=False),
        sa.Column("depth", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["continuity_sessions.id"]),
        sa.UniqueConstraint("session_id", "sequence_num", name="uq_continuity_events_session_sequence"),
        sa.Index("ix_continuity_events_session_id", "session_id"),
        sa.Index("ix_continuity_events_kind", "kind"),
        sa.Index("ix_continuity_events_parent_id", "parent_id"),
        sa.Index("ix_continuity_events_root_id", "root_id"),
        sa.Index("ix_continuity_events_session_timestamp", "session_id", "timestamp"),
    )

    op.create_table(
        "continuity_checkpoints",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("session_id", sa.String(64), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("sequence_num", sa.Integer(), nullable=False),
        sa.Column("work_state", JSON, nullable=False),
        sa.Column("context_percent", sa.Integer(), nullable=True),
        sa.Column("trigger", sa.String(64), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("event_id", sa.String(64), nullable=True),
        sa.Column("size_bytes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["continuity_sessions.id"]),
        sa.UniqueConstraint("session_id", "sequence_num", name="uq_continuity_checkpoints_session_sequence"),
        sa.Index("ix_continuity_checkpoints_session_id", "session_id"),
        sa.Index("ix_continuity_checkpoints_kind", "kind"),
        sa.Index("ix_continuity_checkpoints_created_at", "created_at"),
    )

    op.create_table(
        "continuity_command_log",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("session_id", sa.String(64), nullable=False),
        sa.Column("command_type", sa.String(16), nullable=False),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("tool_name", sa.String(128), nullable=True),
        sa.Column("parameters", JSON, nullable=False, server_default="{}"),
        sa.Column("result", JSON, nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("execution_time_ms", sa.Integer(), nullable=True),
        sa.Column("tags", JSON, nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["continuity_sessions.id"]),
        sa.Index("ix_continuity_command_log_session_id", "session_id"),
        sa.Index("ix_continuity_command_log_session_created", "session_id", "created_at"),
    )


def downgrade() -> None:
    """Drop all continuity tables."""
    op.drop_table("continuity_command_log")
    op.drop_table("continuity_checkpoints")
    op.drop_table("continuity_events")
    op.drop_table("continuity_sessions")
