"""
Progression service.

Turns one logged activity into its derived state changes: points, member
level, team totals and the persisted activity record. All writes for a
submission happen inside a single unit of work, so they apply together or
not at all.
"""

import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from squadfit.database.models import ActivityLog, Member
from squadfit.database.unit_of_work import ProgressionUnitOfWork
from squadfit.services import leaderboard_service, pagination, points_calculator, team_service
from squadfit.services.challenge_resolver import resolve_challenge_context
from squadfit.services.exceptions import (
    ConstraintViolationError,
    ExerciseNotFoundError,
    MemberNotFoundError,
)
from squadfit.services.level_ladder import LevelLadder
from squadfit.utils.datetime_utils import isoformat_or_none, utcnow

logger = logging.getLogger(__name__)

MEASUREMENT_FIELDS = ("quantity", "unit", "sets", "weight", "duration", "calories", "notes")


@dataclass
class ProgressionResult:
    """Outcome of applying a point delta to a member."""

    previous_level: int
    new_level: int
    new_total_points: int
    new_current_points: int
    rewards: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.previous_level

    @property
    def levels_gained(self) -> int:
        return self.new_level - self.previous_level


@dataclass
class ActivityResult:
    """Response of log_activity."""

    activity_id: int
    points_awarded: int
    leveled_up: bool
    new_level: int
    new_total_points: int
    levels_gained: int = 0
    team_id: Optional[int] = None
    team_total_points: Optional[int] = None
    rewards: List[Dict[str, Any]] = field(default_factory=list)
    duplicate: bool = False

    def to_dict(self) -> Dict:
        return asdict(self)


# ============================================================================
# Progression Tracker
# ============================================================================

def apply_point_delta(member: Member, delta: int, ladder: LevelLadder) -> ProgressionResult:
    """
    Apply a point delta to a member and advance their level.

    total_points and current_points both grow by delta; current_points is
    never reset on level-up. Level-ups cascade through every threshold the
    new total passes. At the top of the ladder the member simply stays there.

    Args:
        member: Member row, already locked by the caller
        delta: Non-negative point delta
        ladder: Level ladder

    Returns:
        ProgressionResult describing the transition

    Raises:
        ValueError: If delta is negative
    """
    if delta < 0:
        raise ValueError(f"Point delta must be non-negative, got {delta}")

    previous_level = member.level
    member.total_points += delta
    member.current_points += delta

    reached = ladder.climb(member.level, member.total_points)
    if reached:
        member.level = reached[-1].level

    return ProgressionResult(
        previous_level=previous_level,
        new_level=member.level,
        new_total_points=member.total_points,
        new_current_points=member.current_points,
        rewards=[
            {"level": entry.level, **entry.rewards}
            for entry in reached
            if entry.rewards and any(entry.rewards.values())
        ],
    )


# ============================================================================
# Engine operations
# ============================================================================

def _replay(activity: ActivityLog) -> ActivityResult:
    """Result for a submission that was already applied under the same key."""
    return ActivityResult(
        activity_id=activity.id,
        points_awarded=activity.points,
        leveled_up=activity.leveled_up,
        new_level=activity.level_after,
        new_total_points=activity.total_points_after,
        team_id=activity.team_id,
        duplicate=True,
    )


async def log_activity(
    uow: ProgressionUnitOfWork,
    member_id: str,
    exercise_id: int,
    challenge_id: Optional[int] = None,
    measurements: Optional[Dict[str, Any]] = None,
    idempotency_key: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ActivityResult:
    """
    Log one activity and apply every derived state change atomically.

    Steps: resolve challenge window -> compute points -> update member and
    level -> propagate to team -> insert activity log -> commit.

    Args:
        uow: Unit of work; this call commits it on success
        member_id: Member logging the activity
        exercise_id: Exercise catalog reference
        challenge_id: Optional challenge to attribute the points to
        measurements: Raw measurements (stored, not scored)
        idempotency_key: Optional client-supplied submission identifier
        now: Submission time (defaults to the current UTC time)

    Returns:
        ActivityResult

    Raises:
        ExerciseNotFoundError, ChallengeNotFoundError, ChallengeInactiveError,
        MemberNotFoundError, ConcurrencyConflictError, ConstraintViolationError
    """
    now = now or utcnow()
    measurements = {k: v for k, v in (measurements or {}).items() if k in MEASUREMENT_FIELDS}

    async with uow:
        # Lock the member first so submissions for the same member serialize
        member = await uow.get_member(member_id, for_update=True)
        if member is None:
            raise MemberNotFoundError(f"Member {member_id} not found")

        if idempotency_key:
            existing = await uow.find_activity_by_key(idempotency_key)
            if existing is not None:
                if existing.member_id != member_id:
                    raise ConstraintViolationError(
                        "Idempotency key was already used by another member"
                    )
                logger.info(f"Duplicate submission {idempotency_key} for member {member_id}; replaying")
                return _replay(existing)

        exercise = await uow.get_exercise(exercise_id)
        if exercise is None:
            raise ExerciseNotFoundError(f"Exercise {exercise_id} not found")

        context = await resolve_challenge_context(uow, challenge_id, now)

        difficulty_multiplier = points_calculator.difficulty_multiplier_for(exercise)
        points = points_calculator.calculate_points(difficulty_multiplier, context.multiplier)

        ladder = await uow.load_ladder()
        progression = apply_point_delta(member, points, ladder)
        await uow.save_member(member)

        team = await team_service.propagate_to_team(uow, member, points, ladder)
        if team is not None:
            await uow.save_member(member)

        activity = await uow.add_activity(
            ActivityLog(
                member_id=member_id,
                exercise_id=exercise_id,
                challenge_id=context.challenge_id,
                team_id=team.team_id if team else None,
                difficulty_multiplier=difficulty_multiplier,
                challenge_multiplier=float(context.multiplier),
                points=points,
                total_points_after=progression.new_total_points,
                level_after=progression.new_level,
                leveled_up=progression.leveled_up,
                idempotency_key=idempotency_key,
                created_at=now,
                **measurements,
            )
        )
        await uow.commit()

    await leaderboard_service.invalidate_scopes(context.season_id, context.challenge_id)
    if progression.leveled_up:
        logger.info(
            f"Member {member_id} leveled up: {progression.previous_level} -> {progression.new_level} "
            f"({progression.new_total_points} points)"
        )
    logger.debug(f"Activity {activity.id}: member {member_id} +{points} points")

    return ActivityResult(
        activity_id=activity.id,
        points_awarded=points,
        leveled_up=progression.leveled_up,
        new_level=progression.new_level,
        new_total_points=progression.new_total_points,
        levels_gained=progression.levels_gained,
        team_id=team.team_id if team else None,
        team_total_points=team.total_team_points if team else None,
        rewards=progression.rewards,
    )


async def get_member_progress(uow: ProgressionUnitOfWork, member_id: str) -> Dict:
    """
    Get a member's progression summary.

    points_to_next_level is derived from the ladder and total_points; it is
    None at the top of the ladder.

    Raises:
        MemberNotFoundError
    """
    async with uow:
        member = await uow.get_member(member_id)
        if member is None:
            raise MemberNotFoundError(f"Member {member_id} not found")
        ladder = await uow.load_ladder()

        # Read-only: the unit of work rolls back on exit, which expires ORM rows
        next_entry = ladder.next_entry(member.level)
        return {
            "member_id": member.id,
            "display_name": member.display_name,
            "total_points": member.total_points,
            "current_points": member.current_points,
            "team_points": member.team_points,
            "level": member.level,
            "next_level": next_entry.level if next_entry else None,
            "points_to_next_level": ladder.points_to_next_level(member.level, member.total_points),
        }


def _activity_to_dict(activity: ActivityLog) -> Dict:
    return {
        "id": activity.id,
        "member_id": activity.member_id,
        "exercise_id": activity.exercise_id,
        "challenge_id": activity.challenge_id,
        "team_id": activity.team_id,
        "quantity": activity.quantity,
        "unit": activity.unit,
        "sets": activity.sets,
        "weight": activity.weight,
        "duration": activity.duration,
        "calories": activity.calories,
        "notes": activity.notes,
        "difficulty_multiplier": activity.difficulty_multiplier,
        "challenge_multiplier": activity.challenge_multiplier,
        "points": activity.points,
        "leveled_up": activity.leveled_up,
        "level_after": activity.level_after,
        "created_at": isoformat_or_none(activity.created_at),
    }


async def get_activity_history(
    session: AsyncSession,
    member_id: str,
    limit: int,
    cursor: Optional[str] = None,
) -> Dict:
    """
    Get a member's activity log, newest first.

    Returns:
        {"items": [...], "next_cursor": str | None}

    Raises:
        MemberNotFoundError, InvalidCursorError, ValueError (bad limit)
    """
    limit = pagination.validate_limit(limit)
    offset = pagination.decode_cursor(cursor)

    member = (await session.execute(select(Member.id).where(Member.id == member_id))).scalar_one_or_none()
    if member is None:
        raise MemberNotFoundError(f"Member {member_id} not found")

    result = await session.execute(
        select(ActivityLog)
        .where(ActivityLog.member_id == member_id)
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .offset(offset)
        .limit(limit + 1)
    )
    logs = list(result.scalars().all())
    has_more = len(logs) > limit
    return {
        "items": [_activity_to_dict(a) for a in logs[:limit]],
        "next_cursor": pagination.encode_cursor(offset + limit) if has_more else None,
    }
