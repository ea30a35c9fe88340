"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

Initial progression schema: level ladder, members, exercise catalog, teams
and memberships, seasons and challenges, activity log, leaderboard entries
and settings.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    ]


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        "level_requirements",
        sa.Column("level", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("points_required", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("rewards", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("level"),
        sa.UniqueConstraint("points_required", name="uq_level_requirements_points"),
        sa.CheckConstraint("level >= 1", name="ck_level_requirements_level_positive"),
        sa.CheckConstraint("points_required >= 0", name="ck_level_requirements_points_non_negative"),
    )

    op.create_table(
        "members",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("avatar_url", sa.String(), nullable=True),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("total_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("team_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["level"], ["level_requirements.level"]),
        sa.CheckConstraint("total_points >= 0", name="ck_members_total_points_non_negative"),
    )
    op.create_index("idx_members_total_points", "members", ["total_points"])

    op.create_table(
        "exercise_difficulties",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("label", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("label"),
    )

    op.create_table(
        "exercises",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("difficulty_id", sa.Integer(), nullable=True),
        sa.Column("unit", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
        sa.ForeignKeyConstraint(["difficulty_id"], ["exercise_difficulties.id"]),
    )

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("total_team_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("team_level", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
        sa.ForeignKeyConstraint(["team_level"], ["level_requirements.level"]),
    )
    op.create_index("idx_teams_total_points", "teams", ["total_team_points"])

    op.create_table(
        "team_memberships",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.String(), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("left_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("contributed_points", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"]),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"]),
    )
    op.create_index("idx_team_memberships_team", "team_memberships", ["team_id"])
    op.create_index("idx_team_memberships_member", "team_memberships", ["member_id"])
    # At most one active membership per member
    op.create_index(
        "uq_team_memberships_active_member",
        "team_memberships",
        ["member_id"],
        unique=True,
        postgresql_where=sa.text("left_at IS NULL"),
    )

    op.create_table(
        "seasons",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("starts_at < ends_at", name="ck_seasons_window"),
    )
    op.create_index("idx_seasons_window", "seasons", ["starts_at", "ends_at"])

    op.create_table(
        "challenges",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_team_based", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("points_multiplier", sa.Float(), nullable=False, server_default="1.0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"]),
        sa.CheckConstraint("starts_at < ends_at", name="ck_challenges_window"),
        sa.CheckConstraint("points_multiplier >= 1", name="ck_challenges_multiplier"),
    )
    op.create_index("idx_challenges_season", "challenges", ["season_id"])
    op.create_index("idx_challenges_window", "challenges", ["starts_at", "ends_at"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("member_id", sa.String(), nullable=False),
        sa.Column("exercise_id", sa.Integer(), nullable=False),
        sa.Column("challenge_id", sa.Integer(), nullable=True),
        sa.Column("team_id", sa.Integer(), nullable=True),
        sa.Column("quantity", sa.Float(), nullable=True),
        sa.Column("unit", sa.String(), nullable=True),
        sa.Column("sets", sa.Integer(), nullable=True),
        sa.Column("weight", sa.Float(), nullable=True),
        sa.Column("duration", sa.Float(), nullable=True),
        sa.Column("calories", sa.Float(), nullable=True),
        sa.Column("notes", sa.JSON(), nullable=True),
        sa.Column("difficulty_multiplier", sa.Integer(), nullable=False),
        sa.Column("challenge_multiplier", sa.Float(), nullable=False, server_default="1.0"),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("total_points_after", sa.Integer(), nullable=False),
        sa.Column("level_after", sa.Integer(), nullable=False),
        sa.Column("leveled_up", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("idempotency_key"),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"]),
        sa.ForeignKeyConstraint(["exercise_id"], ["exercises.id"]),
        sa.ForeignKeyConstraint(["challenge_id"], ["challenges.id"]),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"]),
        sa.CheckConstraint("points >= 0", name="ck_activity_logs_points_non_negative"),
    )
    op.create_index("idx_activity_logs_member_created", "activity_logs", ["member_id", "created_at"])
    op.create_index("idx_activity_logs_challenge", "activity_logs", ["challenge_id"])
    op.create_index("idx_activity_logs_created", "activity_logs", ["created_at"])

    op.create_table(
        "leaderboard_entries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("member_id", sa.String(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=True),
        sa.Column("challenge_id", sa.Integer(), nullable=True),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("first_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("calculated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"]),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"]),
        sa.ForeignKeyConstraint(["challenge_id"], ["challenges.id"]),
        sa.CheckConstraint(
            "(season_id IS NULL) <> (challenge_id IS NULL)",
            name="ck_leaderboard_entries_single_scope",
        ),
    )
    op.create_index("idx_leaderboard_entries_season_rank", "leaderboard_entries", ["season_id", "rank"])
    op.create_index("idx_leaderboard_entries_challenge_rank", "leaderboard_entries", ["challenge_id", "rank"])

    op.create_table(
        "settings",
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("key"),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("settings")
    op.drop_table("leaderboard_entries")
    op.drop_table("activity_logs")
    op.drop_table("challenges")
    op.drop_table("seasons")
    op.drop_index("uq_team_memberships_active_member", table_name="team_memberships")
    op.drop_table("team_memberships")
    op.drop_table("teams")
    op.drop_table("exercises")
    op.drop_table("exercise_difficulties")
    op.drop_table("members")
    op.drop_table("level_requirements")
