"""
Unit of work for the progression engine.

Everything one activity submission reads and writes goes through this narrow
interface, so the transactional boundary is explicit. The SQLAlchemy
implementation wraps a single AsyncSession/transaction; tests substitute an
in-memory fake.
"""

import logging
from contextlib import contextmanager
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload
from sqlalchemy.orm.exc import StaleDataError

from squadfit.database.models import (
    ActivityLog,
    Challenge,
    Exercise,
    LevelRequirement,
    Member,
    Team,
    TeamMembership,
)
from squadfit.services.exceptions import ConcurrencyConflictError
from squadfit.services.level_ladder import LevelLadder

logger = logging.getLogger(__name__)


class ProgressionUnitOfWork(Protocol):
    """Operations the engine needs inside one atomic submission."""

    async def __aenter__(self) -> "ProgressionUnitOfWork": ...

    async def __aexit__(self, exc_type, exc, tb) -> None: ...

    async def get_member(self, member_id: str, for_update: bool = False) -> Optional[Member]: ...

    async def save_member(self, member: Member) -> None: ...

    async def get_active_membership(self, member_id: str) -> Optional[TeamMembership]: ...

    async def get_team(self, team_id: int, for_update: bool = False) -> Optional[Team]: ...

    async def save_team(self, team: Team, membership: TeamMembership) -> None: ...

    async def get_exercise(self, exercise_id: int) -> Optional[Exercise]: ...

    async def get_challenge(self, challenge_id: int) -> Optional[Challenge]: ...

    async def load_ladder(self) -> LevelLadder: ...

    async def find_activity_by_key(self, idempotency_key: str) -> Optional[ActivityLog]: ...

    async def add_activity(self, activity: ActivityLog) -> ActivityLog: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


@contextmanager
def conflicts_as_domain_errors():
    """Translate lost-update and duplicate-key races into ConcurrencyConflictError."""
    try:
        yield
    except StaleDataError as e:
        logger.warning(f"Concurrent write detected: {e}")
        raise ConcurrencyConflictError(
            "The record was modified by a concurrent submission. Retry the whole submission."
        ) from e
    except IntegrityError as e:
        logger.warning(f"Integrity conflict during submission: {e.orig}")
        raise ConcurrencyConflictError(
            "The submission conflicted with a concurrent write. Retry the whole submission."
        ) from e


class SqlAlchemyUnitOfWork:
    """
    ProgressionUnitOfWork over one AsyncSession.

    Member and team rows are read with SELECT ... FOR UPDATE, so two submissions
    for the same member serialize on PostgreSQL. Both tables also carry a
    version_id_col, so a lost update on stores without row locks surfaces as
    ConcurrencyConflictError at flush time instead of being silently applied.

    Usage:
        async with SqlAlchemyUnitOfWork(session) as uow:
            ...
            await uow.commit()
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._committed = False

    async def __aenter__(self) -> "SqlAlchemyUnitOfWork":
        self._committed = False
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None or not self._committed:
            await self.rollback()

    # --- members ---

    async def get_member(self, member_id: str, for_update: bool = False) -> Optional[Member]:
        stmt = select(Member).where(Member.id == member_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def save_member(self, member: Member) -> None:
        self.session.add(member)
        with conflicts_as_domain_errors():
            await self.session.flush()

    # --- teams ---

    async def get_active_membership(self, member_id: str) -> Optional[TeamMembership]:
        result = await self.session.execute(
            select(TeamMembership)
            .where(
                TeamMembership.member_id == member_id,
                TeamMembership.left_at.is_(None),
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_team(self, team_id: int, for_update: bool = False) -> Optional[Team]:
        stmt = select(Team).where(Team.id == team_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def save_team(self, team: Team, membership: TeamMembership) -> None:
        self.session.add(team)
        self.session.add(membership)
        with conflicts_as_domain_errors():
            await self.session.flush()

    # --- catalog ---

    async def get_exercise(self, exercise_id: int) -> Optional[Exercise]:
        result = await self.session.execute(select(Exercise).where(Exercise.id == exercise_id))
        return result.scalar_one_or_none()

    async def get_challenge(self, challenge_id: int) -> Optional[Challenge]:
        result = await self.session.execute(
            select(Challenge)
            .options(joinedload(Challenge.season))
            .where(Challenge.id == challenge_id)
        )
        return result.scalar_one_or_none()

    async def load_ladder(self) -> LevelLadder:
        result = await self.session.execute(
            select(LevelRequirement).order_by(LevelRequirement.level)
        )
        return LevelLadder(result.scalars().all())

    # --- activity log ---

    async def find_activity_by_key(self, idempotency_key: str) -> Optional[ActivityLog]:
        result = await self.session.execute(
            select(ActivityLog).where(ActivityLog.idempotency_key == idempotency_key)
        )
        return result.scalar_one_or_none()

    async def add_activity(self, activity: ActivityLog) -> ActivityLog:
        self.session.add(activity)
        with conflicts_as_domain_errors():
            await self.session.flush()
        return activity

    # --- transaction ---

    async def commit(self) -> None:
        with conflicts_as_domain_errors():
            await self.session.commit()
        self._committed = True

    async def rollback(self) -> None:
        await self.session.rollback()
