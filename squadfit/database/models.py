"""
SQLAlchemy ORM models for the SquadFit progression engine.
"""

from sqlalchemy import (
    JSON,
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Float,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from squadfit.database.db import Base


class LevelRequirement(Base):
    """Level ladder entry: cumulative points required to reach a level."""

    __tablename__ = "level_requirements"

    level = Column(Integer, primary_key=True, autoincrement=False)
    points_required = Column(Integer, nullable=False)
    description = Column(String, nullable=True)
    rewards = Column(JSON, nullable=True)  # e.g. {"badge": "Level 5 Achievement", "title": null}
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("points_required", name="uq_level_requirements_points"),
        CheckConstraint("level >= 1", name="ck_level_requirements_level_positive"),
        CheckConstraint("points_required >= 0", name="ck_level_requirements_points_non_negative"),
    )


class Member(Base):
    """Member profiles. The id is issued by the external identity provider."""

    __tablename__ = "members"

    id = Column(String, primary_key=True)
    display_name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    level = Column(Integer, ForeignKey("level_requirements.level"), nullable=False, default=1)
    total_points = Column(Integer, nullable=False, default=0)
    current_points = Column(Integer, nullable=False, default=0)  # Never reset by the engine
    team_points = Column(Integer, nullable=False, default=0)  # Contribution to the current team
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    activity_logs = relationship("ActivityLog", back_populates="member")
    team_memberships = relationship("TeamMembership", back_populates="member")

    # Optimistic concurrency: UPDATE ... WHERE version = :old, StaleDataError on mismatch
    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("total_points >= 0", name="ck_members_total_points_non_negative"),
        Index("idx_members_total_points", "total_points"),
    )


class ExerciseDifficulty(Base):
    """Difficulty ladder. The id doubles as the points multiplier."""

    __tablename__ = "exercise_difficulties"

    id = Column(Integer, primary_key=True, autoincrement=False)
    label = Column(String, nullable=False, unique=True)

    exercises = relationship("Exercise", back_populates="difficulty")


class Exercise(Base):
    """Exercise catalog entries."""

    __tablename__ = "exercises"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    description = Column(Text, nullable=True)
    difficulty_id = Column(Integer, ForeignKey("exercise_difficulties.id"), nullable=True)
    unit = Column(String, nullable=True)  # e.g. "reps", "km", "minutes"
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    difficulty = relationship("ExerciseDifficulty", back_populates="exercises")
    activity_logs = relationship("ActivityLog", back_populates="exercise")


class Team(Base):
    """Competition teams."""

    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    description = Column(Text, nullable=True)
    total_team_points = Column(Integer, nullable=False, default=0)
    team_level = Column(Integer, ForeignKey("level_requirements.level"), nullable=False, default=1)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    memberships = relationship("TeamMembership", back_populates="team")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (Index("idx_teams_total_points", "total_team_points"),)


class TeamMembership(Base):
    """Join table (Member ↔ Team) with membership history.

    A membership is active while left_at is NULL. A member has at most one
    active membership at a time.
    """

    __tablename__ = "team_memberships"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    member_id = Column(String, ForeignKey("members.id"), nullable=False)
    joined_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    left_at = Column(DateTime(timezone=True), nullable=True)
    contributed_points = Column(Integer, nullable=False, default=0)

    # Relationships
    team = relationship("Team", back_populates="memberships")
    member = relationship("Member", back_populates="team_memberships")

    __table_args__ = (
        Index("idx_team_memberships_team", "team_id"),
        Index("idx_team_memberships_member", "member_id"),
        Index(
            "uq_team_memberships_active_member",
            "member_id",
            unique=True,
            postgresql_where=text("left_at IS NULL"),
            sqlite_where=text("left_at IS NULL"),
        ),
    )


class Season(Base):
    """Time-boxed competition periods."""

    __tablename__ = "seasons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    challenges = relationship("Challenge", back_populates="season")

    __table_args__ = (
        CheckConstraint("starts_at < ends_at", name="ck_seasons_window"),
        Index("idx_seasons_window", "starts_at", "ends_at"),
    )


class Challenge(Base):
    """Scoped competitions within a season."""

    __tablename__ = "challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    season_id = Column(Integer, ForeignKey("seasons.id"), nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    is_team_based = Column(Boolean, default=False, nullable=False)
    points_multiplier = Column(Float, default=1.0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    season = relationship("Season", back_populates="challenges", lazy="joined")
    activity_logs = relationship("ActivityLog", back_populates="challenge")

    __table_args__ = (
        CheckConstraint("starts_at < ends_at", name="ck_challenges_window"),
        CheckConstraint("points_multiplier >= 1", name="ck_challenges_multiplier"),
        Index("idx_challenges_season", "season_id"),
        Index("idx_challenges_window", "starts_at", "ends_at"),
    )


class ActivityLog(Base):
    """Append-only record of one logged activity and the points it earned."""

    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(String, ForeignKey("members.id"), nullable=False)
    exercise_id = Column(Integer, ForeignKey("exercises.id"), nullable=False)
    challenge_id = Column(Integer, ForeignKey("challenges.id"), nullable=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True)  # Team credited, if any
    # Raw measurements (display/analytics only, not scored)
    quantity = Column(Float, nullable=True)
    unit = Column(String, nullable=True)
    sets = Column(Integer, nullable=True)
    weight = Column(Float, nullable=True)
    duration = Column(Float, nullable=True)
    calories = Column(Float, nullable=True)
    notes = Column(JSON, nullable=True)
    # Scoring snapshot
    difficulty_multiplier = Column(Integer, nullable=False)
    challenge_multiplier = Column(Float, nullable=False, default=1.0)
    points = Column(Integer, nullable=False)
    total_points_after = Column(Integer, nullable=False)
    level_after = Column(Integer, nullable=False)
    leveled_up = Column(Boolean, nullable=False, default=False)
    idempotency_key = Column(String(128), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    member = relationship("Member", back_populates="activity_logs")
    exercise = relationship("Exercise", back_populates="activity_logs")
    challenge = relationship("Challenge", back_populates="activity_logs")

    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_activity_logs_points_non_negative"),
        Index("idx_activity_logs_member_created", "member_id", "created_at"),
        Index("idx_activity_logs_challenge", "challenge_id"),
        Index("idx_activity_logs_created", "created_at"),
    )


class LeaderboardEntry(Base):
    """Precomputed ranking rows per season or challenge. Disposable cache."""

    __tablename__ = "leaderboard_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(String, ForeignKey("members.id"), nullable=False)
    season_id = Column(Integer, ForeignKey("seasons.id"), nullable=True)
    challenge_id = Column(Integer, ForeignKey("challenges.id"), nullable=True)
    rank = Column(Integer, nullable=False)
    points = Column(Integer, nullable=False)
    first_activity_at = Column(DateTime(timezone=True), nullable=True)
    calculated_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "(season_id IS NULL) <> (challenge_id IS NULL)",
            name="ck_leaderboard_entries_single_scope",
        ),
        Index("idx_leaderboard_entries_season_rank", "season_id", "rank"),
        Index("idx_leaderboard_entries_challenge_rank", "challenge_id", "rank"),
    )


class Setting(Base):
    """Application configuration."""

    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
