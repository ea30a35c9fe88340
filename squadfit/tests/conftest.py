"""
Shared pytest configuration for squadfit tests.

Database tests run against in-memory SQLite (aiosqlite). Engine tests run
against InMemoryStore, a fake unit of work that models row locks and
version checks without a database.
"""

import os

# Must be set before squadfit modules read them at import time
os.environ.setdefault("ENV", "test")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("LEADERBOARD_CACHE_ENABLED", "false")
os.environ.pop("ADMIN_API_TOKEN", None)

import asyncio
from collections import defaultdict
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
import pytz
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from squadfit.database.db import Base
from squadfit.database.models import (
    Challenge,
    Exercise,
    LevelRequirement,
    Member,
    Season,
    Team,
    TeamMembership,
)
from squadfit.database.init_defaults import init_defaults
from squadfit.services import data_service
from squadfit.services.exceptions import ConcurrencyConflictError
from squadfit.services.level_ladder import LevelLadder


NOW = datetime(2026, 3, 15, 12, 0, 0, tzinfo=pytz.UTC)


# ============================================================================
# SQLite fixtures
# ============================================================================

@pytest_asyncio.fixture
async def test_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """Create a test database session."""
    async_session_maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def seeded_session(db_session):
    """Session over a database holding the difficulty scale and default ladder."""
    await init_defaults(db_session)
    return db_session


@pytest_asyncio.fixture
async def test_member(seeded_session):
    return await data_service.provision_member(seeded_session, "user_1", display_name="Alex")


@pytest_asyncio.fixture
async def test_exercise(seeded_session):
    """Intermediate exercise (difficulty multiplier 2)."""
    return await data_service.create_exercise(seeded_session, name="Running", difficulty_id=2, unit="km")


@pytest_asyncio.fixture
async def active_season(seeded_session):
    return await data_service.create_season(
        seeded_session,
        name="Spring",
        starts_at=NOW - timedelta(days=30),
        ends_at=NOW + timedelta(days=30),
    )


@pytest_asyncio.fixture
async def active_challenge(seeded_session, active_season):
    """Triple-points challenge open at NOW."""
    return await data_service.create_challenge(
        seeded_session,
        season_id=active_season["id"],
        name="Triple Week",
        starts_at=NOW - timedelta(days=1),
        ends_at=NOW + timedelta(days=6),
        points_multiplier=3.0,
    )


async def active_contribution_total(session, team_id):
    """Sum of contributed points over a team's active memberships."""
    result = await session.execute(
        select(func.coalesce(func.sum(TeamMembership.contributed_points), 0)).where(
            TeamMembership.team_id == team_id,
            TeamMembership.left_at.is_(None),
        )
    )
    return int(result.scalar() or 0)


# ============================================================================
# In-memory unit of work
# ============================================================================

def _clone(obj):
    """Detached copy of an ORM row (column attributes only)."""
    return type(obj)(**{c.key: getattr(obj, c.key) for c in obj.__table__.columns})


class InMemoryStore:
    """
    Committed state shared by InMemoryUnitOfWork instances.

    With row_locks=True, get_member/get_team(for_update=True) block until the
    holder commits or rolls back, like SELECT ... FOR UPDATE. With
    row_locks=False only the version check at commit protects against lost
    updates.
    """

    def __init__(self, ladder_entries, row_locks=True):
        self.ladder_entries = list(ladder_entries)
        self.row_locks = row_locks
        self.members = {}
        self.teams = {}
        self.memberships = {}
        self.exercises = {}
        self.challenges = {}
        self.activities = []
        self.locks = defaultdict(asyncio.Lock)
        self.commits = 0
        self._next_id = defaultdict(int)

    def next_id(self, kind: str) -> int:
        self._next_id[kind] += 1
        return self._next_id[kind]

    def uow(self) -> "InMemoryUnitOfWork":
        return InMemoryUnitOfWork(self)

    # --- builders ---

    def add_member(self, member_id, total_points=0, level=1, **kwargs):
        member = Member(
            id=member_id,
            display_name=kwargs.pop("display_name", member_id),
            level=level,
            total_points=total_points,
            current_points=kwargs.pop("current_points", total_points),
            team_points=kwargs.pop("team_points", 0),
            version=1,
            **kwargs,
        )
        self.members[member_id] = member
        return member

    def add_exercise(self, difficulty_id=None, name=None):
        exercise_id = self.next_id("exercise")
        exercise = Exercise(id=exercise_id, name=name or f"Exercise {exercise_id}", difficulty_id=difficulty_id)
        self.exercises[exercise_id] = exercise
        return exercise

    def add_challenge(self, starts_at, ends_at, points_multiplier=1.0, season=None):
        if season is None:
            season = Season(
                id=self.next_id("season"),
                name="Season",
                starts_at=starts_at - timedelta(days=30),
                ends_at=ends_at + timedelta(days=30),
                is_active=True,
            )
        challenge = Challenge(
            id=self.next_id("challenge"),
            season_id=season.id,
            name="Challenge",
            starts_at=starts_at,
            ends_at=ends_at,
            points_multiplier=points_multiplier,
        )
        challenge.season = season
        self.challenges[challenge.id] = challenge
        return challenge

    def add_team(self, name="Team", total_team_points=0, team_level=1):
        team = Team(
            id=self.next_id("team"),
            name=name,
            total_team_points=total_team_points,
            team_level=team_level,
            version=1,
        )
        self.teams[team.id] = team
        return team

    def add_membership(self, team, member_id, contributed_points=0):
        membership = TeamMembership(
            id=self.next_id("membership"),
            team_id=team.id,
            member_id=member_id,
            joined_at=NOW - timedelta(days=1),
            left_at=None,
            contributed_points=contributed_points,
        )
        self.memberships[membership.id] = membership
        return membership


class InMemoryUnitOfWork:
    """ProgressionUnitOfWork over an InMemoryStore. Writes are staged until commit."""

    def __init__(self, store: InMemoryStore):
        self.store = store
        self._held = []
        self._read_versions = {}
        self._members = {}
        self._teams = {}
        self._memberships = {}
        self._activities = []
        self.committed = False
        self.rolled_back = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is not None or not self.committed:
            await self.rollback()

    async def _lock(self, key):
        if not self.store.row_locks or key in self._held:
            return
        await self.store.locks[key].acquire()
        self._held.append(key)

    def _release(self):
        for key in self._held:
            self.store.locks[key].release()
        self._held = []

    async def get_member(self, member_id, for_update=False):
        if for_update:
            await self._lock(("member", member_id))
        member = self.store.members.get(member_id)
        if member is None:
            return None
        self._read_versions[("member", member_id)] = member.version
        return _clone(member)

    async def save_member(self, member):
        self._members[member.id] = member

    async def get_active_membership(self, member_id):
        for membership in self.store.memberships.values():
            if membership.member_id == member_id and membership.left_at is None:
                return _clone(membership)
        return None

    async def get_team(self, team_id, for_update=False):
        if for_update:
            await self._lock(("team", team_id))
        team = self.store.teams.get(team_id)
        if team is None:
            return None
        self._read_versions[("team", team_id)] = team.version
        return _clone(team)

    async def save_team(self, team, membership):
        self._teams[team.id] = team
        self._memberships[membership.id] = membership

    async def get_exercise(self, exercise_id):
        # Yield to the loop so concurrent submissions interleave here
        await asyncio.sleep(0)
        return self.store.exercises.get(exercise_id)

    async def get_challenge(self, challenge_id):
        return self.store.challenges.get(challenge_id)

    async def load_ladder(self):
        return LevelLadder(self.store.ladder_entries)

    async def find_activity_by_key(self, idempotency_key):
        for activity in self.store.activities:
            if activity.idempotency_key == idempotency_key:
                return activity
        return None

    async def add_activity(self, activity):
        if any(a.idempotency_key == activity.idempotency_key for a in self.store.activities if a.idempotency_key):
            raise ConcurrencyConflictError("duplicate idempotency key")
        activity.id = self.store.next_id("activity")
        self._activities.append(activity)
        return activity

    async def commit(self):
        await asyncio.sleep(0)
        try:
            for kind, staged, table in (
                ("member", self._members, self.store.members),
                ("team", self._teams, self.store.teams),
            ):
                for key in staged:
                    if table[key].version != self._read_versions[(kind, key)]:
                        raise ConcurrencyConflictError(f"{kind} {key} was modified concurrently")
            for kind, staged, table in (
                ("member", self._members, self.store.members),
                ("team", self._teams, self.store.teams),
            ):
                for key, row in staged.items():
                    row.version = table[key].version + 1
                    table[key] = row
            self.store.memberships.update(self._memberships)
            self.store.activities.extend(self._activities)
            self.store.commits += 1
            self.committed = True
        finally:
            if not self.committed:
                self._discard()
            self._release()

    def _discard(self):
        self._members, self._teams, self._memberships, self._activities = {}, {}, {}, []

    async def rollback(self):
        self._discard()
        self.rolled_back = True
        self._release()


def make_ladder_entries(*thresholds):
    """LevelRequirement rows for levels 1..n with the given cumulative thresholds."""
    return [
        LevelRequirement(level=idx, points_required=points, rewards=None)
        for idx, points in enumerate(thresholds, start=1)
    ]


@pytest.fixture
def store():
    """Store with a 4-level ladder (0, 100, 150, 225) and one member at 0 points."""
    s = InMemoryStore(make_ladder_entries(0, 100, 150, 225))
    s.add_member("user_1")
    return s
