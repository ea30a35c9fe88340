"""
Comprehensive tests for data_service CRUD operations.
Tests member provisioning, seasons, challenges, the exercise catalog, the
level ladder and settings.
"""
from datetime import timedelta

import pytest
from sqlalchemy import select
from squadfit.database.init_defaults import init_defaults
from squadfit.database.models import Member
from squadfit.database.unit_of_work import SqlAlchemyUnitOfWork
from squadfit.services import data_service, progression_service
from squadfit.services.exceptions import (
    ChallengeNotFoundError,
    ConstraintViolationError,
    ExerciseNotFoundError,
    InvalidRangeError,
    MemberNotFoundError,
    NotFoundError,
    SeasonNotFoundError,
)
from squadfit.utils.constants import DEFAULT_LADDER_SIZE

from conftest import NOW


# ============================================================================
# Defaults
# ============================================================================

@pytest.mark.asyncio
async def test_init_defaults_is_idempotent(db_session):
    first = await init_defaults(db_session)
    second = await init_defaults(db_session)

    assert first == {"difficulties": 4, "levels": DEFAULT_LADDER_SIZE}
    assert second == {"difficulties": 0, "levels": 0}
    assert await data_service.get_setting(db_session, "leaderboard_cache_ttl_seconds") == "30"


@pytest.mark.asyncio
async def test_list_difficulties(seeded_session):
    difficulties = await data_service.list_difficulties(seeded_session)
    assert [d["label"] for d in difficulties] == ["Beginner", "Intermediate", "Advanced", "Expert"]
    assert [d["id"] for d in difficulties] == [1, 2, 3, 4]


# ============================================================================
# Member Tests
# ============================================================================

@pytest.mark.asyncio
async def test_provision_new_member(seeded_session):
    member = await data_service.provision_member(seeded_session, "auth0|abc", display_name="Alex")

    assert member["created"] is True
    assert member["id"] == "auth0|abc"
    assert member["level"] == 1
    assert member["total_points"] == 0
    assert member["current_points"] == 0
    assert member["team_points"] == 0


@pytest.mark.asyncio
async def test_provision_existing_member_only_touches_profile(seeded_session, test_member, test_exercise):
    await progression_service.log_activity(
        SqlAlchemyUnitOfWork(seeded_session), "user_1", test_exercise["id"], now=NOW
    )

    member = await data_service.provision_member(
        seeded_session, "user_1", display_name="Alexandra", avatar_url="https://cdn.example/a.png"
    )

    assert member["created"] is False
    assert member["display_name"] == "Alexandra"
    assert member["avatar_url"] == "https://cdn.example/a.png"
    assert member["total_points"] == 20


@pytest.mark.asyncio
async def test_provision_member_requires_id(seeded_session):
    with pytest.raises(ValueError):
        await data_service.provision_member(seeded_session, "  ")


@pytest.mark.asyncio
async def test_get_member_not_found(seeded_session):
    with pytest.raises(MemberNotFoundError):
        await data_service.get_member(seeded_session, "ghost")


# ============================================================================
# Season Tests
# ============================================================================

@pytest.mark.asyncio
async def test_create_season(seeded_session):
    season = await data_service.create_season(
        seeded_session, name="Spring", starts_at=NOW, ends_at=NOW + timedelta(days=90)
    )
    assert season["id"] > 0
    assert season["name"] == "Spring"
    assert season["is_active"] is True
    assert season["starts_at"] == "2026-03-15T12:00:00+00:00"


@pytest.mark.asyncio
async def test_create_season_invalid_range(seeded_session):
    with pytest.raises(InvalidRangeError):
        await data_service.create_season(seeded_session, name="Bad", starts_at=NOW, ends_at=NOW)
    with pytest.raises(InvalidRangeError):
        await data_service.create_season(seeded_session, name="Bad", starts_at=NOW, ends_at=NOW - timedelta(days=1))


@pytest.mark.asyncio
async def test_update_season(seeded_session, active_season):
    updated = await data_service.update_season(seeded_session, active_season["id"], name="Spring Cup", is_active=False)
    assert updated["name"] == "Spring Cup"
    assert updated["is_active"] is False

    with pytest.raises(InvalidRangeError):
        await data_service.update_season(seeded_session, active_season["id"], ends_at=NOW - timedelta(days=60))


@pytest.mark.asyncio
async def test_list_and_get_seasons(seeded_session, active_season):
    later = await data_service.create_season(
        seeded_session, name="Summer", starts_at=NOW + timedelta(days=31), ends_at=NOW + timedelta(days=90)
    )
    seasons = await data_service.list_seasons(seeded_session)
    assert [s["id"] for s in seasons] == [later["id"], active_season["id"]]

    assert (await data_service.get_season(seeded_session, later["id"]))["name"] == "Summer"
    with pytest.raises(SeasonNotFoundError):
        await data_service.get_season(seeded_session, 999)


# ============================================================================
# Challenge Tests
# ============================================================================

@pytest.mark.asyncio
async def test_create_challenge(seeded_session, active_season):
    challenge = await data_service.create_challenge(
        seeded_session,
        season_id=active_season["id"],
        name="Plank Week",
        starts_at=NOW,
        ends_at=NOW + timedelta(days=7),
        description="Hold it",
        is_team_based=True,
        points_multiplier=1.5,
    )
    assert challenge["season_id"] == active_season["id"]
    assert challenge["points_multiplier"] == 1.5
    assert challenge["is_team_based"] is True

    challenges = await data_service.list_challenges(seeded_session, active_season["id"])
    assert [c["id"] for c in challenges] == [challenge["id"]]


@pytest.mark.asyncio
async def test_create_challenge_validation(seeded_session, active_season):
    with pytest.raises(SeasonNotFoundError):
        await data_service.create_challenge(
            seeded_session, season_id=999, name="X", starts_at=NOW, ends_at=NOW + timedelta(days=1)
        )
    with pytest.raises(InvalidRangeError):
        await data_service.create_challenge(
            seeded_session, season_id=active_season["id"], name="X", starts_at=NOW, ends_at=NOW
        )
    with pytest.raises(ValueError):
        await data_service.create_challenge(
            seeded_session,
            season_id=active_season["id"],
            name="X",
            starts_at=NOW,
            ends_at=NOW + timedelta(days=1),
            points_multiplier=0.5,
        )


@pytest.mark.asyncio
async def test_update_challenge(seeded_session, active_challenge):
    updated = await data_service.update_challenge(seeded_session, active_challenge["id"], points_multiplier=2.0)
    assert updated["points_multiplier"] == 2.0

    with pytest.raises(ValueError):
        await data_service.update_challenge(seeded_session, active_challenge["id"], points_multiplier=0.9)
    with pytest.raises(ChallengeNotFoundError):
        await data_service.update_challenge(seeded_session, 999, name="X")


@pytest.mark.asyncio
async def test_list_active_challenges(seeded_session, active_challenge):
    active = await data_service.list_active_challenges(seeded_session, NOW)
    assert [c["id"] for c in active] == [active_challenge["id"]]
    assert await data_service.list_active_challenges(seeded_session, NOW + timedelta(days=10)) == []


@pytest.mark.asyncio
async def test_delete_challenge(seeded_session, active_challenge):
    await data_service.delete_challenge(seeded_session, active_challenge["id"])
    with pytest.raises(ChallengeNotFoundError):
        await data_service.get_challenge(seeded_session, active_challenge["id"])


@pytest.mark.asyncio
async def test_delete_challenge_with_activity_blocked(seeded_session, test_member, test_exercise, active_challenge):
    await progression_service.log_activity(
        SqlAlchemyUnitOfWork(seeded_session),
        "user_1",
        test_exercise["id"],
        challenge_id=active_challenge["id"],
        now=NOW,
    )
    with pytest.raises(ConstraintViolationError):
        await data_service.delete_challenge(seeded_session, active_challenge["id"])


# ============================================================================
# Exercise Catalog Tests
# ============================================================================

@pytest.mark.asyncio
async def test_create_and_list_exercises(seeded_session):
    await data_service.create_exercise(seeded_session, name="Squats", difficulty_id=1, unit="reps")
    await data_service.create_exercise(seeded_session, name="Deadlift", difficulty_id=3, unit="kg")

    exercises = await data_service.list_exercises(seeded_session)
    assert [e["name"] for e in exercises] == ["Deadlift", "Squats"]
    assert exercises[0]["difficulty_id"] == 3


@pytest.mark.asyncio
async def test_create_exercise_validation(seeded_session, test_exercise):
    with pytest.raises(NotFoundError):
        await data_service.create_exercise(seeded_session, name="Flying", difficulty_id=9)
    with pytest.raises(ConstraintViolationError):
        await data_service.create_exercise(seeded_session, name="Running", difficulty_id=1)
    with pytest.raises(ValueError):
        await data_service.create_exercise(seeded_session, name="")


@pytest.mark.asyncio
async def test_delete_exercise(seeded_session, test_exercise):
    await data_service.delete_exercise(seeded_session, test_exercise["id"])
    assert await data_service.list_exercises(seeded_session) == []
    with pytest.raises(ExerciseNotFoundError):
        await data_service.delete_exercise(seeded_session, test_exercise["id"])


@pytest.mark.asyncio
async def test_delete_exercise_in_use_blocked(seeded_session, test_member, test_exercise):
    await progression_service.log_activity(
        SqlAlchemyUnitOfWork(seeded_session), "user_1", test_exercise["id"], now=NOW
    )
    with pytest.raises(ConstraintViolationError):
        await data_service.delete_exercise(seeded_session, test_exercise["id"])


# ============================================================================
# Level Ladder Tests
# ============================================================================

@pytest.mark.asyncio
async def test_list_levels(seeded_session):
    levels = await data_service.list_levels(seeded_session)
    assert len(levels) == DEFAULT_LADDER_SIZE
    assert levels[0] == {"level": 1, "points_required": 0, "description": "Level 1",
                         "rewards": {"badge": None, "title": None}}
    assert levels[1]["points_required"] == 100


@pytest.mark.asyncio
async def test_create_level_appends_to_top(seeded_session):
    levels = await data_service.list_levels(seeded_session)
    top = levels[-1]

    entry = await data_service.create_level(
        seeded_session, level=top["level"] + 1, points_required=top["points_required"] + 1,
        rewards={"badge": "Legend", "title": None},
    )
    assert entry["level"] == DEFAULT_LADDER_SIZE + 1
    assert entry["description"] == f"Level {DEFAULT_LADDER_SIZE + 1}"


@pytest.mark.asyncio
async def test_create_level_rejects_gaps_and_non_increasing(seeded_session):
    levels = await data_service.list_levels(seeded_session)
    top = levels[-1]

    with pytest.raises(ConstraintViolationError):
        await data_service.create_level(seeded_session, level=top["level"] + 2, points_required=10 ** 9 * 2)
    with pytest.raises(ConstraintViolationError):
        await data_service.create_level(seeded_session, level=top["level"] + 1, points_required=top["points_required"])
    with pytest.raises(ConstraintViolationError):
        await data_service.create_level(seeded_session, level=5, points_required=400)


@pytest.mark.asyncio
async def test_first_level_of_empty_ladder(db_session):
    with pytest.raises(ConstraintViolationError):
        await data_service.create_level(db_session, level=2, points_required=100)
    with pytest.raises(ConstraintViolationError):
        await data_service.create_level(db_session, level=1, points_required=10)

    entry = await data_service.create_level(db_session, level=1, points_required=0)
    assert entry["level"] == 1


@pytest.mark.asyncio
async def test_delete_level(seeded_session):
    with pytest.raises(NotFoundError):
        await data_service.delete_level(seeded_session, 999)
    with pytest.raises(ConstraintViolationError):
        await data_service.delete_level(seeded_session, 2)

    await data_service.delete_level(seeded_session, DEFAULT_LADDER_SIZE)
    levels = await data_service.list_levels(seeded_session)
    assert levels[-1]["level"] == DEFAULT_LADDER_SIZE - 1


@pytest.mark.asyncio
async def test_delete_level_held_by_member_blocked(seeded_session, test_member):
    member = (await seeded_session.execute(select(Member).where(Member.id == "user_1"))).scalar_one()
    member.level = DEFAULT_LADDER_SIZE
    await seeded_session.commit()

    with pytest.raises(ConstraintViolationError):
        await data_service.delete_level(seeded_session, DEFAULT_LADDER_SIZE)


# ============================================================================
# Settings Tests
# ============================================================================

@pytest.mark.asyncio
async def test_settings_upsert(seeded_session):
    assert await data_service.get_setting(seeded_session, "log_level") is None
    await data_service.set_setting(seeded_session, "log_level", "DEBUG")
    await data_service.set_setting(seeded_session, "log_level", "WARNING")
    assert await data_service.get_setting(seeded_session, "log_level") == "WARNING"
