"""Create matches, sessions and session_players tables.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Adds:
  matches: append-only match log (source of truth)
  sessions: one derived summary row per session id
  session_players: one derived row per (session id, player)

Derived tables carry no unique constraint on their keys: they are rebuilt
by tracker/reconciler.py, which collapses duplicates.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _counter(name: str) -> sa.Column:
    return sa.Column(name, sa.Integer(), nullable=False, server_default="0")


def upgrade() -> None:
    op.create_table(
        "matches",
        sa.Column("row_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("player_a", sa.String(64), nullable=False),
        sa.Column("player_b", sa.String(64), nullable=False),
        sa.Column("outcome", sa.String(8), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("venue", sa.String(64), nullable=False, server_default=""),
        sa.Column("intensity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("session_id", sa.String(36), nullable=False, server_default=""),
    )
    op.create_index("ix_matches_session_id", "matches", ["session_id"])

    op.create_table(
        "sessions",
        sa.Column("row_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.String(36), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        _counter("match_count"),
        _counter("a_wins"),
        _counter("b_wins"),
        _counter("draws"),
        sa.Column("avg_intensity", sa.Float(), nullable=False, server_default="0"),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_sessions_session_id", "sessions", ["session_id"])

    op.create_table(
        "session_players",
        sa.Column("row_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.String(36), nullable=False),
        sa.Column("player", sa.String(64), nullable=False),
        _counter("matches"),
        _counter("wins"),
        _counter("wins_as_a"),
        _counter("wins_as_b"),
        _counter("losses"),
        _counter("losses_as_a"),
        _counter("losses_as_b"),
        _counter("draws"),
        _counter("draws_as_a"),
        _counter("draws_as_b"),
        _counter("inflicted"),
        _counter("suffered"),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_session_players_session_id", "session_players", ["session_id"])


def downgrade() -> None:
    op.drop_index("ix_session_players_session_id", table_name="session_players")
    op.drop_table("session_players")
    op.drop_index("ix_sessions_session_id", table_name="sessions")
    op.drop_table("sessions")
    op.drop_index("ix_matches_session_id", table_name="matches")
    op.drop_table("matches")
