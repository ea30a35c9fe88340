"""
Leaderboard snapshot builder.

Rankings are derived from activity_logs on demand. Each ranked list comes
from one aggregate SELECT, so a read sees a consistent snapshot and takes no
locks. Ranked lists may be cached in Redis per scope; the persisted
leaderboard_entries table is a disposable copy rebuilt by
rebuild_leaderboard_entries.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select, func, and_, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from squadfit.database.models import ActivityLog, Challenge, LeaderboardEntry, Member, Season
from squadfit.services import pagination, redis_service, settings_service
from squadfit.services.exceptions import ChallengeNotFoundError, SeasonNotFoundError
from squadfit.utils.constants import DEFAULT_PAGE_SIZE, LEADERBOARD_CACHE_TTL_SECONDS
from squadfit.utils.datetime_utils import isoformat_or_none, utcnow

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "leaderboard:"
CACHE_ENABLED = settings_service.get_bool_env("LEADERBOARD_CACHE_ENABLED", True)


@dataclass(frozen=True)
class LeaderboardScope:
    """Exactly one of season_id / challenge_id."""

    season_id: Optional[int] = None
    challenge_id: Optional[int] = None

    def __post_init__(self):
        if (self.season_id is None) == (self.challenge_id is None):
            raise ValueError("Leaderboard scope needs exactly one of season_id or challenge_id")

    @property
    def cache_key(self) -> str:
        if self.challenge_id is not None:
            return f"{CACHE_KEY_PREFIX}challenge:{self.challenge_id}"
        return f"{CACHE_KEY_PREFIX}season:{self.season_id}"

    def to_dict(self) -> Dict:
        return {"season_id": self.season_id, "challenge_id": self.challenge_id}


# ============================================================================
# Ranking query
# ============================================================================

async def _scope_filter(session: AsyncSession, scope: LeaderboardScope):
    """WHERE clause selecting the activities that count toward a scope."""
    if scope.challenge_id is not None:
        exists = await session.execute(select(Challenge.id).where(Challenge.id == scope.challenge_id))
        if exists.scalar_one_or_none() is None:
            raise ChallengeNotFoundError(f"Challenge {scope.challenge_id} not found")
        return ActivityLog.challenge_id == scope.challenge_id

    season = (
        await session.execute(select(Season).where(Season.id == scope.season_id))
    ).scalar_one_or_none()
    if season is None:
        raise SeasonNotFoundError(f"Season {scope.season_id} not found")

    season_challenges = select(Challenge.id).where(Challenge.season_id == season.id)
    return or_(
        ActivityLog.challenge_id.in_(season_challenges),
        and_(
            ActivityLog.challenge_id.is_(None),
            ActivityLog.created_at >= season.starts_at,
            ActivityLog.created_at < season.ends_at,
        ),
    )


async def compute_rankings(session: AsyncSession, scope: LeaderboardScope) -> List[Dict]:
    """
    Rank every member with activity in scope.

    Order: points desc, then earliest contributing activity asc, then
    member_id asc. Ranks are positions 1..N in that order.

    Raises:
        SeasonNotFoundError, ChallengeNotFoundError
    """
    where = await _scope_filter(session, scope)

    points = func.sum(ActivityLog.points).label("points")
    first_activity_at = func.min(ActivityLog.created_at).label("first_activity_at")
    result = await session.execute(
        select(ActivityLog.member_id, Member.display_name, points, first_activity_at)
        .join(Member, Member.id == ActivityLog.member_id)
        .where(where)
        .group_by(ActivityLog.member_id, Member.display_name)
        .order_by(points.desc(), first_activity_at.asc(), ActivityLog.member_id.asc())
    )

    return [
        {
            "member_id": row.member_id,
            "display_name": row.display_name,
            "points": int(row.points or 0),
            "first_activity_at": isoformat_or_none(row.first_activity_at),
            "rank": idx + 1,
        }
        for idx, row in enumerate(result.all())
    ]


async def _cached_rankings(session: AsyncSession, scope: LeaderboardScope) -> List[Dict]:
    if not CACHE_ENABLED:
        return await compute_rankings(session, scope)

    cached = await redis_service.redis_get_json(scope.cache_key)
    if cached is not None:
        return cached

    rankings = await compute_rankings(session, scope)
    ttl = await settings_service.get_int_setting(
        session,
        "leaderboard_cache_ttl_seconds",
        "LEADERBOARD_CACHE_TTL_SECONDS",
        LEADERBOARD_CACHE_TTL_SECONDS,
    )
    if ttl and ttl > 0:
        await redis_service.redis_set_json(scope.cache_key, rankings, ttl)
    return rankings


async def invalidate_scopes(season_id: Optional[int] = None, challenge_id: Optional[int] = None) -> None:
    """
    Drop cached rankings touched by a new activity.

    An activity outside any challenge can count toward every season whose
    window contains it, so all season rankings are dropped in that case.
    """
    if not CACHE_ENABLED:
        return
    if challenge_id is None:
        await redis_service.redis_delete_pattern(f"{CACHE_KEY_PREFIX}season:*")
        return

    keys = [LeaderboardScope(challenge_id=challenge_id).cache_key]
    if season_id is not None:
        keys.append(LeaderboardScope(season_id=season_id).cache_key)
    await redis_service.redis_delete(*keys)


# ============================================================================
# Read API
# ============================================================================

async def get_leaderboard(
    session: AsyncSession,
    scope: LeaderboardScope,
    limit: int = DEFAULT_PAGE_SIZE,
    cursor: Optional[str] = None,
) -> Dict:
    """
    Get one page of a ranked leaderboard.

    Args:
        session: Database session (read only)
        scope: Season or challenge scope
        limit: Page size, 1..MAX_PAGE_SIZE
        cursor: Opaque cursor from a previous page, or None for the first page

    Returns:
        {"scope": {...}, "items": [{member_id, display_name, points, rank}], "next_cursor": str | None}

    Raises:
        SeasonNotFoundError, ChallengeNotFoundError, InvalidCursorError, ValueError
    """
    limit = pagination.validate_limit(limit)
    offset = pagination.decode_cursor(cursor)

    rankings = await _cached_rankings(session, scope)
    page = rankings[offset:offset + limit]
    has_more = offset + limit < len(rankings)

    return {
        "scope": scope.to_dict(),
        "items": [
            {
                "member_id": row["member_id"],
                "display_name": row["display_name"],
                "points": row["points"],
                "rank": row["rank"],
            }
            for row in page
        ],
        "next_cursor": pagination.encode_cursor(offset + limit) if has_more else None,
    }


# ============================================================================
# Persisted snapshots
# ============================================================================

async def rebuild_leaderboard_entries(session: AsyncSession, scope: LeaderboardScope) -> int:
    """
    Replace the persisted leaderboard rows of a scope with fresh rankings.

    Returns:
        Number of rows written
    """
    rankings = await compute_rankings(session, scope)
    calculated_at = utcnow()

    if scope.challenge_id is not None:
        await session.execute(
            delete(LeaderboardEntry).where(LeaderboardEntry.challenge_id == scope.challenge_id)
        )
    else:
        await session.execute(
            delete(LeaderboardEntry).where(LeaderboardEntry.season_id == scope.season_id)
        )

    session.add_all(
        [
            LeaderboardEntry(
                member_id=row["member_id"],
                season_id=scope.season_id,
                challenge_id=scope.challenge_id,
                rank=row["rank"],
                points=row["points"],
                first_activity_at=(
                    datetime.fromisoformat(row["first_activity_at"]) if row["first_activity_at"] else None
                ),
                calculated_at=calculated_at,
            )
            for row in rankings
        ]
    )
    await session.commit()
    await redis_service.redis_delete(scope.cache_key)
    logger.info(f"Rebuilt leaderboard {scope.cache_key}: {len(rankings)} entries")
    return len(rankings)


async def rebuild_all_leaderboards(session: AsyncSession) -> Dict[str, int]:
    """Rebuild persisted rows for every season and challenge."""
    season_ids = (await session.execute(select(Season.id).order_by(Season.id))).scalars().all()
    challenge_ids = (await session.execute(select(Challenge.id).order_by(Challenge.id))).scalars().all()

    counts = {}
    for season_id in season_ids:
        scope = LeaderboardScope(season_id=season_id)
        counts[scope.cache_key] = await rebuild_leaderboard_entries(session, scope)
    for challenge_id in challenge_ids:
        scope = LeaderboardScope(challenge_id=challenge_id)
        counts[scope.cache_key] = await rebuild_leaderboard_entries(session, scope)
    return counts


async def get_persisted_leaderboard(session: AsyncSession, scope: LeaderboardScope) -> List[Dict]:
    """Read back the rows written by rebuild_leaderboard_entries, by rank."""
    column = LeaderboardEntry.challenge_id if scope.challenge_id is not None else LeaderboardEntry.season_id
    value = scope.challenge_id if scope.challenge_id is not None else scope.season_id
    result = await session.execute(
        select(LeaderboardEntry).where(column == value).order_by(LeaderboardEntry.rank.asc())
    )
    return [
        {
            "member_id": entry.member_id,
            "points": entry.points,
            "rank": entry.rank,
            "first_activity_at": isoformat_or_none(entry.first_activity_at),
            "calculated_at": isoformat_or_none(entry.calculated_at),
        }
        for entry in result.scalars().all()
    ]
