"""
Team service: aggregation of member points into team totals, plus membership
management.

Team totals are a denormalized running sum. Each membership records the
points it contributed, and leaving a team subtracts them again, so a team's
total always equals the contributions of its current members.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from squadfit.database.models import LevelRequirement, Member, Team, TeamMembership
from squadfit.database.unit_of_work import ProgressionUnitOfWork, conflicts_as_domain_errors
from squadfit.services import pagination
from squadfit.services.exceptions import (
    ConcurrencyConflictError,
    MemberNotFoundError,
    TeamMembershipConflictError,
    TeamMembershipNotFoundError,
    TeamNotFoundError,
)
from squadfit.services.level_ladder import LevelLadder
from squadfit.utils.datetime_utils import isoformat_or_none, utcnow

logger = logging.getLogger(__name__)


@dataclass
class TeamAggregation:
    """Outcome of propagating a point delta to a team."""

    team_id: int
    total_team_points: int
    team_level: int
    leveled_up: bool


# ============================================================================
# Aggregation (runs inside the activity submission's unit of work)
# ============================================================================

async def propagate_to_team(
    uow: ProgressionUnitOfWork,
    member: Member,
    delta: int,
    ladder: LevelLadder,
) -> Optional[TeamAggregation]:
    """
    Add a member's point delta to their team, if they have one.

    Args:
        uow: Unit of work shared with the member update
        member: Member the points were awarded to (already locked)
        delta: Points awarded
        ladder: Level ladder used for team levels

    Returns:
        TeamAggregation, or None when the member has no active membership
    """
    membership = await uow.get_active_membership(member.id)
    if membership is None:
        return None

    team = await uow.get_team(membership.team_id, for_update=True)
    if team is None:
        # Membership pointing at a missing team is an integrity problem, not a no-op
        raise TeamNotFoundError(f"Team {membership.team_id} not found")

    team.total_team_points += delta
    reached = ladder.climb(team.team_level, team.total_team_points)
    if reached:
        logger.info(
            f"Team {team.id} leveled up: {team.team_level} -> {reached[-1].level} "
            f"({team.total_team_points} points)"
        )
        team.team_level = reached[-1].level

    membership.contributed_points += delta
    member.team_points += delta

    await uow.save_team(team, membership)
    return TeamAggregation(
        team_id=team.id,
        total_team_points=team.total_team_points,
        team_level=team.team_level,
        leveled_up=bool(reached),
    )


# ============================================================================
# Membership management
# ============================================================================

async def _load_ladder(session: AsyncSession) -> LevelLadder:
    result = await session.execute(select(LevelRequirement).order_by(LevelRequirement.level))
    return LevelLadder(result.scalars().all())


def _team_to_dict(team: Team, member_count: Optional[int] = None) -> Dict:
    data = {
        "id": team.id,
        "name": team.name,
        "description": team.description,
        "total_team_points": team.total_team_points,
        "team_level": team.team_level,
        "created_at": isoformat_or_none(team.created_at),
    }
    if member_count is not None:
        data["member_count"] = member_count
    return data


def _membership_to_dict(membership: TeamMembership) -> Dict:
    return {
        "id": membership.id,
        "team_id": membership.team_id,
        "member_id": membership.member_id,
        "joined_at": isoformat_or_none(membership.joined_at),
        "left_at": isoformat_or_none(membership.left_at),
        "contributed_points": membership.contributed_points,
    }


async def create_team(session: AsyncSession, name: str, description: Optional[str] = None) -> Dict:
    """Create a team at the ladder's starting level."""
    name = (name or "").strip()
    if not name:
        raise ValueError("Team name cannot be empty")
    ladder = await _load_ladder(session)
    team = Team(
        name=name,
        description=description,
        total_team_points=0,
        team_level=ladder.starting_level,
    )
    session.add(team)
    await session.commit()
    await session.refresh(team)
    logger.info(f"Created team {team.id} ({team.name})")
    return _team_to_dict(team, member_count=0)


async def get_team(session: AsyncSession, team_id: int) -> Dict:
    """Get a team with its active members."""
    team = (await session.execute(select(Team).where(Team.id == team_id))).scalar_one_or_none()
    if team is None:
        raise TeamNotFoundError(f"Team {team_id} not found")

    result = await session.execute(
        select(TeamMembership)
        .where(TeamMembership.team_id == team_id, TeamMembership.left_at.is_(None))
        .order_by(TeamMembership.joined_at.asc(), TeamMembership.id.asc())
    )
    memberships = result.scalars().all()
    data = _team_to_dict(team, member_count=len(memberships))
    data["members"] = [_membership_to_dict(m) for m in memberships]
    return data


async def join_team(
    session: AsyncSession,
    team_id: int,
    member_id: str,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Add a member to a team.

    Points earned before joining never count toward the team.

    Raises:
        TeamNotFoundError, MemberNotFoundError
        TeamMembershipConflictError: member already has an active membership
        ConcurrencyConflictError: a concurrent write changed the member
    """
    team = (await session.execute(select(Team).where(Team.id == team_id))).scalar_one_or_none()
    if team is None:
        raise TeamNotFoundError(f"Team {team_id} not found")

    member = (
        await session.execute(
            select(Member)
            .where(Member.id == member_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if member is None:
        raise MemberNotFoundError(f"Member {member_id} not found")

    existing = (
        await session.execute(
            select(TeamMembership).where(
                TeamMembership.member_id == member_id,
                TeamMembership.left_at.is_(None),
            )
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise TeamMembershipConflictError(
            f"Member {member_id} already belongs to team {existing.team_id}"
        )

    membership = TeamMembership(
        team_id=team_id,
        member_id=member_id,
        joined_at=now or utcnow(),
        contributed_points=0,
    )
    member.team_points = 0
    session.add(membership)
    try:
        with conflicts_as_domain_errors():
            await session.commit()
    except ConcurrencyConflictError as e:
        await session.rollback()
        if isinstance(e.__cause__, IntegrityError):
            # Lost a race with a concurrent join (partial unique index on active memberships)
            raise TeamMembershipConflictError(
                f"Member {member_id} already belongs to a team"
            ) from e.__cause__
        raise
    await session.refresh(membership)
    logger.info(f"Member {member_id} joined team {team_id}")
    return _membership_to_dict(membership)


async def leave_team(session: AsyncSession, member_id: str, now: Optional[datetime] = None) -> Dict:
    """
    Remove a member from their current team.

    The membership's contributed points are subtracted from the team total
    and the team level is recomputed from the ladder, so it can go down here.

    Rows are locked member, then membership, then team: the same order
    log_activity takes them in.

    Raises:
        MemberNotFoundError
        TeamMembershipNotFoundError: member has no active membership
        ConcurrencyConflictError: a concurrent write changed the member or team
    """
    member = (
        await session.execute(
            select(Member)
            .where(Member.id == member_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if member is None:
        raise MemberNotFoundError(f"Member {member_id} not found")

    membership = (
        await session.execute(
            select(TeamMembership)
            .where(
                TeamMembership.member_id == member_id,
                TeamMembership.left_at.is_(None),
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if membership is None:
        raise TeamMembershipNotFoundError(f"Member {member_id} is not on a team")

    team = (
        await session.execute(
            select(Team)
            .where(Team.id == membership.team_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one()
    ladder = await _load_ladder(session)

    team.total_team_points = max(team.total_team_points - membership.contributed_points, 0)
    team.team_level = ladder.level_for_points(team.total_team_points)
    membership.left_at = now or utcnow()
    member.team_points = 0

    try:
        with conflicts_as_domain_errors():
            await session.commit()
    except ConcurrencyConflictError:
        await session.rollback()
        raise
    await session.refresh(membership)
    logger.info(
        f"Member {member_id} left team {team.id}; removed {membership.contributed_points} points "
        f"(team total now {team.total_team_points})"
    )
    return _membership_to_dict(membership)


# ============================================================================
# Standings
# ============================================================================

async def get_team_standings(
    session: AsyncSession,
    limit: int,
    cursor: Optional[str] = None,
) -> Dict:
    """
    Teams ordered by total points desc, then creation order.

    Returns:
        {"items": [{team_id, name, points, team_level, rank}], "next_cursor": str | None}
    """
    limit = pagination.validate_limit(limit)
    offset = pagination.decode_cursor(cursor)

    result = await session.execute(
        select(Team)
        .order_by(Team.total_team_points.desc(), Team.created_at.asc(), Team.id.asc())
        .offset(offset)
        .limit(limit + 1)
    )
    teams = list(result.scalars().all())
    has_more = len(teams) > limit
    teams = teams[:limit]

    items = [
        {
            "team_id": team.id,
            "name": team.name,
            "points": team.total_team_points,
            "team_level": team.team_level,
            "rank": offset + idx + 1,
        }
        for idx, team in enumerate(teams)
    ]
    return {
        "items": items,
        "next_cursor": pagination.encode_cursor(offset + limit) if has_more else None,
    }
