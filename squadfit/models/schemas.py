"""
Pydantic models for API request/response validation.
"""

from datetime import datetime
from typing import Any, Dict, Optional, List
from pydantic import BaseModel, Field, model_validator


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    message: str
    redis_available: Optional[bool] = None


# Activities


class LogActivityRequest(BaseModel):
    """Request to log one activity."""

    exercise_id: int
    challenge_id: Optional[int] = None
    quantity: Optional[float] = Field(default=None, ge=0)
    unit: Optional[str] = None
    sets: Optional[int] = Field(default=None, ge=0)
    weight: Optional[float] = Field(default=None, ge=0)
    duration: Optional[float] = Field(default=None, ge=0)
    calories: Optional[float] = Field(default=None, ge=0)
    notes: Optional[Dict[str, Any]] = None
    idempotency_key: Optional[str] = Field(default=None, min_length=1, max_length=128)

    def measurements(self) -> Dict[str, Any]:
        return self.model_dump(
            exclude={"exercise_id", "challenge_id", "idempotency_key"},
            exclude_none=True,
        )


class RewardPayload(BaseModel):
    level: int
    badge: Optional[str] = None
    title: Optional[str] = None


class ActivityResponse(BaseModel):
    """Result of logging an activity."""

    activity_id: int
    points_awarded: int
    leveled_up: bool
    new_level: int
    new_total_points: int
    levels_gained: int = 0
    team_id: Optional[int] = None
    team_total_points: Optional[int] = None
    rewards: List[RewardPayload] = []
    duplicate: bool = False


class ActivityHistoryItem(BaseModel):
    id: int
    member_id: str
    exercise_id: int
    challenge_id: Optional[int] = None
    team_id: Optional[int] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    sets: Optional[int] = None
    weight: Optional[float] = None
    duration: Optional[float] = None
    calories: Optional[float] = None
    notes: Optional[Dict[str, Any]] = None
    difficulty_multiplier: int
    challenge_multiplier: float
    points: int
    leveled_up: bool
    level_after: int
    created_at: Optional[str] = None


class ActivityHistoryResponse(BaseModel):
    items: List[ActivityHistoryItem]
    next_cursor: Optional[str] = None


# Members


class ProvisionMemberRequest(BaseModel):
    """Profile data reported by the identity provider."""

    display_name: Optional[str] = Field(default=None, max_length=100)
    avatar_url: Optional[str] = None


class MemberResponse(BaseModel):
    id: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    level: int
    total_points: int
    current_points: int
    team_points: int
    created_at: Optional[str] = None
    created: Optional[bool] = None


class MemberProgressResponse(BaseModel):
    member_id: str
    display_name: Optional[str] = None
    total_points: int
    current_points: int
    team_points: int
    level: int
    next_level: Optional[int] = None
    points_to_next_level: Optional[int] = None


# Leaderboards


class LeaderboardItem(BaseModel):
    member_id: str
    display_name: Optional[str] = None
    points: int
    rank: int


class LeaderboardResponse(BaseModel):
    scope: Dict[str, Optional[int]]
    items: List[LeaderboardItem]
    next_cursor: Optional[str] = None


class LeaderboardRebuildRequest(BaseModel):
    """Rebuild one scope, or every scope when neither id is given."""

    season_id: Optional[int] = None
    challenge_id: Optional[int] = None

    @model_validator(mode="after")
    def validate_single_scope(self):
        if self.season_id is not None and self.challenge_id is not None:
            raise ValueError("Provide either season_id or challenge_id, not both")
        return self


# Teams


class CreateTeamRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None


class JoinTeamRequest(BaseModel):
    member_id: str = Field(min_length=1)


class TeamMembershipResponse(BaseModel):
    id: int
    team_id: int
    member_id: str
    joined_at: Optional[str] = None
    left_at: Optional[str] = None
    contributed_points: int


class TeamResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    total_team_points: int
    team_level: int
    created_at: Optional[str] = None
    member_count: Optional[int] = None
    members: Optional[List[TeamMembershipResponse]] = None


class TeamStandingItem(BaseModel):
    team_id: int
    name: str
    points: int
    team_level: int
    rank: int


class TeamStandingsResponse(BaseModel):
    items: List[TeamStandingItem]
    next_cursor: Optional[str] = None


# Seasons and challenges


class CreateSeasonRequest(BaseModel):
    name: str = Field(min_length=1)
    starts_at: datetime
    ends_at: datetime
    is_active: bool = True


class UpdateSeasonRequest(BaseModel):
    name: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    is_active: Optional[bool] = None


class SeasonResponse(BaseModel):
    id: int
    name: str
    starts_at: str
    ends_at: str
    is_active: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CreateChallengeRequest(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    starts_at: datetime
    ends_at: datetime
    is_team_based: bool = False
    points_multiplier: float = 1.0


class UpdateChallengeRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    is_team_based: Optional[bool] = None
    points_multiplier: Optional[float] = None


class ChallengeResponse(BaseModel):
    id: int
    season_id: int
    name: str
    description: Optional[str] = None
    starts_at: str
    ends_at: str
    is_team_based: bool
    points_multiplier: float
    created_at: Optional[str] = None


# Catalog and ladder


class CreateExerciseRequest(BaseModel):
    name: str = Field(min_length=1)
    difficulty_id: Optional[int] = None
    description: Optional[str] = None
    unit: Optional[str] = None


class ExerciseResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    difficulty_id: Optional[int] = None
    unit: Optional[str] = None
    is_active: bool


class DifficultyResponse(BaseModel):
    id: int
    label: str


class CreateLevelRequest(BaseModel):
    level: int = Field(ge=1)
    points_required: int = Field(ge=0)
    description: Optional[str] = None
    rewards: Optional[Dict[str, Any]] = None


class LevelResponse(BaseModel):
    level: int
    points_required: int
    description: Optional[str] = None
    rewards: Optional[Dict[str, Any]] = None

