"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

Creates agents, sessions, players, matches and saved_players.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CATEGORY_CHECK = "category IN ('Beginner', 'Intermediate', 'Expert')"


def _timestamps(updated: bool = True):
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())]
    if updated:
        columns.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now())
        )
    return columns


def upgrade() -> None:
    op.create_table(
        "agents",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(), nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_agents_username", "agents", ["username"])

    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "agent_id",
            sa.Integer(),
            sa.ForeignKey("agents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("agent_name", sa.String(), nullable=False),
        sa.Column("court_name", sa.String(), nullable=False),
        sa.Column("date", sa.String(), nullable=False),
        sa.Column("start_time", sa.String(), nullable=True),
        sa.Column("end_time", sa.String(), nullable=True),
        sa.Column("location_url", sa.String(), nullable=True),
        sa.Column("court_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("court_labels", sa.String(), nullable=True),
        sa.Column("shareable_slug", sa.String(12), nullable=False, unique=True),
        *_timestamps(),
        sa.CheckConstraint("court_count >= 1", name="ck_sessions_court_count_positive"),
    )
    op.create_index("idx_sessions_agent", "sessions", ["agent_id"])
    op.create_index("idx_sessions_slug", "sessions", ["shareable_slug"])

    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "session_id",
            sa.Integer(),
            sa.ForeignKey("sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=False, server_default="Beginner"),
        sa.Column("games_played", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_waiting", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("session_id", "name", name="uq_players_session_name"),
        sa.CheckConstraint(CATEGORY_CHECK, name="ck_players_category"),
        sa.CheckConstraint("games_played >= 0", name="ck_players_games_played"),
    )
    op.create_index("idx_players_session", "players", ["session_id"])

    player_fk = lambda column: sa.Column(  # noqa: E731
        column, sa.Integer(), sa.ForeignKey("players.id", ondelete="RESTRICT"), nullable=False
    )
    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "session_id",
            sa.Integer(),
            sa.ForeignKey("sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("court_number", sa.Integer(), nullable=False),
        player_fk("team1_player1_id"),
        player_fk("team1_player2_id"),
        player_fk("team2_player1_id"),
        player_fk("team2_player2_id"),
        *_timestamps(updated=False),
        sa.UniqueConstraint("session_id", "court_number", name="uq_matches_session_court"),
        sa.CheckConstraint("court_number >= 1", name="ck_matches_court_number"),
    )
    op.create_index("idx_matches_session", "matches", ["session_id"])

    op.create_table(
        "saved_players",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "agent_id",
            sa.Integer(),
            sa.ForeignKey("agents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=False, server_default="Beginner"),
        *_timestamps(updated=False),
        sa.UniqueConstraint("agent_id", "name", name="uq_saved_players_agent_name"),
        sa.CheckConstraint(CATEGORY_CHECK, name="ck_saved_players_category"),
    )
    op.create_index("idx_saved_players_agent", "saved_players", ["agent_id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("saved_players")
    op.drop_table("matches")
    op.drop_table("players")
    op.drop_table("sessions")
    op.drop_table("agents")
