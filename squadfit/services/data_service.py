"""
Data service layer for database operations.

Admin-side CRUD for member profiles, seasons, challenges, the exercise catalog
and the level ladder. These keep the referential guarantees the progression
engine relies on.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from squadfit.database.models import (
    ActivityLog,
    Challenge,
    Exercise,
    ExerciseDifficulty,
    LevelRequirement,
    Member,
    Season,
    Setting,
    Team,
)
from squadfit.services import challenge_resolver
from squadfit.services.exceptions import (
    ChallengeNotFoundError,
    ConstraintViolationError,
    ExerciseNotFoundError,
    InvalidRangeError,
    MemberNotFoundError,
    NotFoundError,
    SeasonNotFoundError,
)
from squadfit.services.level_ladder import LevelLadder
from squadfit.utils.constants import MIN_CHALLENGE_MULTIPLIER, STARTING_LEVEL
from squadfit.utils.datetime_utils import ensure_utc, isoformat_or_none

logger = logging.getLogger(__name__)


def _validate_window(starts_at: datetime, ends_at: datetime) -> None:
    if ensure_utc(starts_at) >= ensure_utc(ends_at):
        raise InvalidRangeError(
            f"starts_at ({ensure_utc(starts_at).isoformat()}) must be before "
            f"ends_at ({ensure_utc(ends_at).isoformat()})"
        )


# ============================================================================
# Members
# ============================================================================

def _member_to_dict(member: Member) -> Dict:
    return {
        "id": member.id,
        "display_name": member.display_name,
        "avatar_url": member.avatar_url,
        "level": member.level,
        "total_points": member.total_points,
        "current_points": member.current_points,
        "team_points": member.team_points,
        "created_at": isoformat_or_none(member.created_at),
    }


async def provision_member(
    session: AsyncSession,
    member_id: str,
    display_name: Optional[str] = None,
    avatar_url: Optional[str] = None,
) -> Dict:
    """
    Create or update a member profile.

    Called when the identity provider reports a new or changed user. New
    members start at the bottom of the ladder with zero points; updates only
    touch profile fields, never points or level.

    Returns:
        Member dict with an extra "created" flag
    """
    member_id = (member_id or "").strip()
    if not member_id:
        raise ValueError("member_id cannot be empty")

    member = (await session.execute(select(Member).where(Member.id == member_id))).scalar_one_or_none()
    created = member is None
    if created:
        ladder = LevelLadder(
            (await session.execute(select(LevelRequirement))).scalars().all()
        )
        member = Member(
            id=member_id,
            display_name=display_name,
            avatar_url=avatar_url,
            level=ladder.starting_level,
            total_points=0,
            current_points=0,
            team_points=0,
        )
        session.add(member)
    else:
        if display_name is not None:
            member.display_name = display_name
        if avatar_url is not None:
            member.avatar_url = avatar_url

    await session.commit()
    await session.refresh(member)
    if created:
        logger.info(f"Provisioned member {member_id} at level {member.level}")

    data = _member_to_dict(member)
    data["created"] = created
    return data


async def get_member(session: AsyncSession, member_id: str) -> Dict:
    """Get a member profile. Raises MemberNotFoundError."""
    member = (await session.execute(select(Member).where(Member.id == member_id))).scalar_one_or_none()
    if member is None:
        raise MemberNotFoundError(f"Member {member_id} not found")
    return _member_to_dict(member)


# ============================================================================
# Seasons
# ============================================================================

def _season_to_dict(season: Season) -> Dict:
    return {
        "id": season.id,
        "name": season.name,
        "starts_at": isoformat_or_none(season.starts_at),
        "ends_at": isoformat_or_none(season.ends_at),
        "is_active": season.is_active,
        "created_at": isoformat_or_none(season.created_at),
        "updated_at": isoformat_or_none(season.updated_at),
    }


async def create_season(
    session: AsyncSession,
    name: str,
    starts_at: datetime,
    ends_at: datetime,
    is_active: bool = True,
) -> Dict:
    """Create a season. Raises InvalidRangeError unless starts_at < ends_at."""
    _validate_window(starts_at, ends_at)
    season = Season(
        name=name,
        starts_at=ensure_utc(starts_at),
        ends_at=ensure_utc(ends_at),
        is_active=is_active,
    )
    session.add(season)
    await session.commit()
    await session.refresh(season)
    logger.info(f"Created season {season.id} ({season.name})")
    return _season_to_dict(season)


async def _load_season(session: AsyncSession, season_id: int) -> Season:
    season = (await session.execute(select(Season).where(Season.id == season_id))).scalar_one_or_none()
    if season is None:
        raise SeasonNotFoundError(f"Season {season_id} not found")
    return season


async def get_season(session: AsyncSession, season_id: int) -> Dict:
    """Get a season by ID."""
    return _season_to_dict(await _load_season(session, season_id))


async def list_seasons(session: AsyncSession) -> List[Dict]:
    """List seasons, most recent first."""
    result = await session.execute(select(Season).order_by(Season.starts_at.desc(), Season.id.desc()))
    return [_season_to_dict(s) for s in result.scalars().all()]


async def update_season(session: AsyncSession, season_id: int, **fields) -> Dict:
    """Update a season. The resulting window must still satisfy starts_at < ends_at."""
    allowed = {"name", "starts_at", "ends_at", "is_active"}
    updates = {k: v for k, v in fields.items() if k in allowed and v is not None}

    season = await _load_season(session, season_id)
    _validate_window(updates.get("starts_at", season.starts_at), updates.get("ends_at", season.ends_at))

    for key, value in updates.items():
        setattr(season, key, ensure_utc(value) if isinstance(value, datetime) else value)
    await session.commit()
    await session.refresh(season)
    return _season_to_dict(season)


# ============================================================================
# Challenges
# ============================================================================

def _challenge_to_dict(challenge: Challenge) -> Dict:
    return {
        "id": challenge.id,
        "season_id": challenge.season_id,
        "name": challenge.name,
        "description": challenge.description,
        "starts_at": isoformat_or_none(challenge.starts_at),
        "ends_at": isoformat_or_none(challenge.ends_at),
        "is_team_based": challenge.is_team_based,
        "points_multiplier": challenge.points_multiplier,
        "created_at": isoformat_or_none(challenge.created_at),
    }


def _validate_multiplier(points_multiplier: float) -> None:
    if points_multiplier is None or points_multiplier < MIN_CHALLENGE_MULTIPLIER:
        raise ValueError(
            f"points_multiplier must be >= {MIN_CHALLENGE_MULTIPLIER}, got {points_multiplier}"
        )


async def create_challenge(
    session: AsyncSession,
    season_id: int,
    name: str,
    starts_at: datetime,
    ends_at: datetime,
    description: Optional[str] = None,
    is_team_based: bool = False,
    points_multiplier: float = 1.0,
) -> Dict:
    """
    Create a challenge inside a season.

    Raises:
        SeasonNotFoundError, InvalidRangeError, ValueError (multiplier < 1)
    """
    await _load_season(session, season_id)
    _validate_window(starts_at, ends_at)
    _validate_multiplier(points_multiplier)

    challenge = Challenge(
        season_id=season_id,
        name=name,
        description=description,
        starts_at=ensure_utc(starts_at),
        ends_at=ensure_utc(ends_at),
        is_team_based=is_team_based,
        points_multiplier=points_multiplier,
    )
    session.add(challenge)
    await session.commit()
    await session.refresh(challenge)
    logger.info(f"Created challenge {challenge.id} ({challenge.name}) in season {season_id}")
    return _challenge_to_dict(challenge)


async def _load_challenge(session: AsyncSession, challenge_id: int) -> Challenge:
    challenge = (
        await session.execute(select(Challenge).where(Challenge.id == challenge_id))
    ).scalar_one_or_none()
    if challenge is None:
        raise ChallengeNotFoundError(f"Challenge {challenge_id} not found")
    return challenge


async def get_challenge(session: AsyncSession, challenge_id: int) -> Dict:
    return _challenge_to_dict(await _load_challenge(session, challenge_id))


async def list_challenges(session: AsyncSession, season_id: int) -> List[Dict]:
    """List a season's challenges in start order."""
    await _load_season(session, season_id)
    result = await session.execute(
        select(Challenge)
        .where(Challenge.season_id == season_id)
        .order_by(Challenge.starts_at.asc(), Challenge.id.asc())
    )
    return [_challenge_to_dict(c) for c in result.scalars().unique().all()]


async def list_active_challenges(session: AsyncSession, now: Optional[datetime] = None) -> List[Dict]:
    """Challenges accepting submissions right now, ending soonest first."""
    challenges = await challenge_resolver.list_active_challenges(session, now)
    return [_challenge_to_dict(c) for c in challenges]


async def update_challenge(session: AsyncSession, challenge_id: int, **fields) -> Dict:
    """Update a challenge. Window and multiplier rules match create_challenge."""
    allowed = {"name", "description", "starts_at", "ends_at", "is_team_based", "points_multiplier"}
    updates = {k: v for k, v in fields.items() if k in allowed and v is not None}

    challenge = await _load_challenge(session, challenge_id)
    _validate_window(
        updates.get("starts_at", challenge.starts_at),
        updates.get("ends_at", challenge.ends_at),
    )
    if "points_multiplier" in updates:
        _validate_multiplier(updates["points_multiplier"])

    for key, value in updates.items():
        setattr(challenge, key, ensure_utc(value) if isinstance(value, datetime) else value)
    await session.commit()
    await session.refresh(challenge)
    return _challenge_to_dict(challenge)


async def delete_challenge(session: AsyncSession, challenge_id: int) -> None:
    """
    Delete a challenge that has no activity attributed to it.

    Raises:
        ChallengeNotFoundError, ConstraintViolationError
    """
    challenge = await _load_challenge(session, challenge_id)
    count = await _count(session, ActivityLog.challenge_id == challenge_id)
    if count:
        raise ConstraintViolationError(
            f"Challenge {challenge_id} has {count} activity log(s) and cannot be deleted"
        )
    await session.execute(delete(Challenge).where(Challenge.id == challenge.id))
    await session.commit()
    logger.info(f"Deleted challenge {challenge_id}")


async def _count(session: AsyncSession, where) -> int:
    result = await session.execute(select(func.count(ActivityLog.id)).where(where))
    return int(result.scalar() or 0)


# ============================================================================
# Exercise catalog
# ============================================================================

def _exercise_to_dict(exercise: Exercise) -> Dict:
    return {
        "id": exercise.id,
        "name": exercise.name,
        "description": exercise.description,
        "difficulty_id": exercise.difficulty_id,
        "unit": exercise.unit,
        "is_active": exercise.is_active,
    }


async def list_difficulties(session: AsyncSession) -> List[Dict]:
    result = await session.execute(select(ExerciseDifficulty).order_by(ExerciseDifficulty.id))
    return [{"id": d.id, "label": d.label} for d in result.scalars().all()]


async def list_exercises(session: AsyncSession, include_inactive: bool = False) -> List[Dict]:
    query = select(Exercise).order_by(Exercise.name.asc())
    if not include_inactive:
        query = query.where(Exercise.is_active.is_(True))
    result = await session.execute(query)
    return [_exercise_to_dict(e) for e in result.scalars().all()]


async def create_exercise(
    session: AsyncSession,
    name: str,
    difficulty_id: Optional[int] = None,
    description: Optional[str] = None,
    unit: Optional[str] = None,
) -> Dict:
    """
    Add an exercise to the catalog.

    Raises:
        NotFoundError: unknown difficulty
        ConstraintViolationError: an exercise with this name already exists
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Exercise name cannot be empty")

    if difficulty_id is not None:
        difficulty = await session.get(ExerciseDifficulty, difficulty_id)
        if difficulty is None:
            raise NotFoundError(f"Difficulty {difficulty_id} not found")

    existing = (await session.execute(select(Exercise.id).where(Exercise.name == name))).scalar_one_or_none()
    if existing is not None:
        raise ConstraintViolationError(f"Exercise '{name}' already exists")

    exercise = Exercise(name=name, difficulty_id=difficulty_id, description=description, unit=unit)
    session.add(exercise)
    await session.commit()
    await session.refresh(exercise)
    return _exercise_to_dict(exercise)


async def delete_exercise(session: AsyncSession, exercise_id: int) -> None:
    """
    Remove an exercise that no activity references.

    Raises:
        ExerciseNotFoundError, ConstraintViolationError
    """
    exercise = await session.get(Exercise, exercise_id)
    if exercise is None:
        raise ExerciseNotFoundError(f"Exercise {exercise_id} not found")
    count = await _count(session, ActivityLog.exercise_id == exercise_id)
    if count:
        raise ConstraintViolationError(
            f"Exercise {exercise_id} is referenced by {count} activity log(s); deactivate it instead"
        )
    await session.execute(delete(Exercise).where(Exercise.id == exercise.id))
    await session.commit()
    logger.info(f"Deleted exercise {exercise_id}")


# ============================================================================
# Level ladder
# ============================================================================

def _level_to_dict(entry: LevelRequirement) -> Dict:
    return {
        "level": entry.level,
        "points_required": entry.points_required,
        "description": entry.description,
        "rewards": entry.rewards,
    }


async def list_levels(session: AsyncSession) -> List[Dict]:
    result = await session.execute(select(LevelRequirement).order_by(LevelRequirement.level))
    return [_level_to_dict(e) for e in result.scalars().all()]


async def create_level(
    session: AsyncSession,
    level: int,
    points_required: int,
    description: Optional[str] = None,
    rewards: Optional[Dict[str, Any]] = None,
) -> Dict:
    """
    Append a level to the top of the ladder.

    The ladder stays gap-free and strictly increasing: the new level must be
    exactly one above the current maximum and require more points than it.

    Raises:
        ConstraintViolationError
    """
    ladder = LevelLadder((await session.execute(select(LevelRequirement))).scalars().all())
    if ladder.max_level is None:
        if level != STARTING_LEVEL or points_required != 0:
            raise ConstraintViolationError(
                f"The first ladder entry must be level {STARTING_LEVEL} with 0 points required"
            )
    else:
        if level != ladder.max_level + 1:
            raise ConstraintViolationError(
                f"Next level must be {ladder.max_level + 1}, got {level}"
            )
        top = ladder.get(ladder.max_level)
        if points_required <= top.points_required:
            raise ConstraintViolationError(
                f"Level {level} must require more than {top.points_required} points"
            )

    entry = LevelRequirement(
        level=level,
        points_required=points_required,
        description=description or f"Level {level}",
        rewards=rewards,
    )
    session.add(entry)
    await session.commit()
    logger.info(f"Added level {level} ({points_required} points)")
    return _level_to_dict(entry)


async def delete_level(session: AsyncSession, level: int) -> None:
    """
    Remove the top level of the ladder.

    Raises:
        NotFoundError: level does not exist
        ConstraintViolationError: not the top level, or members/teams sit at it
    """
    ladder = LevelLadder((await session.execute(select(LevelRequirement))).scalars().all())
    entry = ladder.get(level)
    if entry is None:
        raise NotFoundError(f"Level {level} not found")
    if level != ladder.max_level:
        raise ConstraintViolationError(f"Only the top level ({ladder.max_level}) can be removed")

    members = (await session.execute(select(func.count(Member.id)).where(Member.level == level))).scalar() or 0
    teams = (await session.execute(select(func.count(Team.id)).where(Team.team_level == level))).scalar() or 0
    if members or teams:
        raise ConstraintViolationError(
            f"Level {level} is held by {members} member(s) and {teams} team(s)"
        )

    await session.execute(delete(LevelRequirement).where(LevelRequirement.level == entry.level))
    await session.commit()
    logger.info(f"Removed level {level}")


# ============================================================================
# Settings
# ============================================================================

async def get_setting(session: AsyncSession, key: str) -> Optional[str]:
    """
    Get a setting value.

    Returns:
        Setting value or None if not found
    """
    setting = await session.get(Setting, key)
    return setting.value if setting else None


async def set_setting(session: AsyncSession, key: str, value: str) -> None:
    """Set a setting value (upsert)."""
    setting = await session.get(Setting, key)
    if setting is None:
        session.add(Setting(key=key, value=value))
    else:
        setting.value = value
    await session.commit()

