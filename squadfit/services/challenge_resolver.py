"""
Season/challenge context resolution.

Validates that a challenge is inside its active window before points are
attributed to it. Windows are half-open: [starts_at, ends_at).
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from squadfit.database.models import Challenge, Season
from squadfit.database.unit_of_work import ProgressionUnitOfWork
from squadfit.services.exceptions import ChallengeInactiveError, ChallengeNotFoundError
from squadfit.utils.constants import MIN_CHALLENGE_MULTIPLIER
from squadfit.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChallengeContext:
    """Resolved challenge (or none) and the multiplier it contributes."""

    challenge: Optional[Challenge]
    multiplier: Decimal

    @property
    def challenge_id(self) -> Optional[int]:
        return self.challenge.id if self.challenge is not None else None

    @property
    def season_id(self) -> Optional[int]:
        return self.challenge.season_id if self.challenge is not None else None


NO_CHALLENGE = ChallengeContext(challenge=None, multiplier=Decimal(MIN_CHALLENGE_MULTIPLIER))


def is_window_active(starts_at: datetime, ends_at: datetime, now: datetime) -> bool:
    """True iff now falls inside [starts_at, ends_at)."""
    return ensure_utc(starts_at) <= ensure_utc(now) < ensure_utc(ends_at)


def is_challenge_active(challenge: Challenge, now: datetime) -> bool:
    """
    Check whether a challenge is currently active.

    A challenge is active iff now is inside its own window and, by extension,
    inside its season's window with the season flagged active.
    """
    if not is_window_active(challenge.starts_at, challenge.ends_at, now):
        return False
    season = challenge.season
    if season is not None:
        if not season.is_active:
            return False
        if not is_window_active(season.starts_at, season.ends_at, now):
            return False
    return True


async def resolve_challenge_context(
    uow: ProgressionUnitOfWork,
    challenge_id: Optional[int],
    now: Optional[datetime] = None,
) -> ChallengeContext:
    """
    Resolve the challenge context for an activity submission.

    Args:
        uow: Unit of work for the current submission
        challenge_id: Optional challenge reference
        now: Evaluation time (defaults to the current UTC time)

    Returns:
        ChallengeContext with multiplier 1 when no challenge is given

    Raises:
        ChallengeNotFoundError: challenge_id does not exist
        ChallengeInactiveError: challenge exists but is outside its window
    """
    if challenge_id is None:
        return NO_CHALLENGE

    now = now or utcnow()
    challenge = await uow.get_challenge(challenge_id)
    if challenge is None:
        raise ChallengeNotFoundError(f"Challenge {challenge_id} not found")

    if not is_challenge_active(challenge, now):
        logger.info(f"Rejected submission for inactive challenge {challenge_id} at {now.isoformat()}")
        raise ChallengeInactiveError(
            f"Challenge {challenge_id} is not active at {ensure_utc(now).isoformat()}"
        )

    return ChallengeContext(
        challenge=challenge,
        multiplier=Decimal(str(challenge.points_multiplier)),
    )


async def list_active_challenges(session: AsyncSession, now: Optional[datetime] = None) -> List[Challenge]:
    """
    List challenges whose window contains now, ending soonest first.

    Season-level activity is checked as well, so a challenge inside an
    inactive season is not returned.
    """
    now = now or utcnow()
    result = await session.execute(
        select(Challenge)
        .join(Season, Challenge.season_id == Season.id)
        .options(joinedload(Challenge.season))
        .where(
            and_(
                Challenge.starts_at <= now,
                Challenge.ends_at > now,
                Season.is_active.is_(True),
                Season.starts_at <= now,
                Season.ends_at > now,
            )
        )
        .order_by(Challenge.ends_at.asc(), Challenge.id.asc())
    )
    return list(result.scalars().unique().all())
