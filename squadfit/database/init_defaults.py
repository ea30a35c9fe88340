#!/usr/bin/env python3
"""
Initialize default database values.

Run on startup. Seeds the difficulty scale, the default level ladder and
default settings. Idempotent: existing rows are left as they are, so an
admin-edited ladder survives restarts.
"""

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from squadfit.database.db import AsyncSessionLocal
from squadfit.database.models import ExerciseDifficulty, LevelRequirement
from squadfit.services import data_service
from squadfit.services.level_ladder import default_ladder_entries

logger = logging.getLogger(__name__)

DEFAULT_DIFFICULTIES = [
    (1, "Beginner"),
    (2, "Intermediate"),
    (3, "Advanced"),
    (4, "Expert"),
]

DEFAULT_SETTINGS = {
    "leaderboard_cache_ttl_seconds": "30",
}


async def seed_difficulties(session: AsyncSession) -> int:
    """Insert missing difficulty rows. Returns count of new rows."""
    existing = set((await session.execute(select(ExerciseDifficulty.id))).scalars().all())
    created = 0
    for difficulty_id, label in DEFAULT_DIFFICULTIES:
        if difficulty_id in existing:
            continue
        session.add(ExerciseDifficulty(id=difficulty_id, label=label))
        created += 1
    await session.flush()
    return created


async def seed_level_ladder(session: AsyncSession) -> int:
    """Seed the default ladder when the table is empty. Returns count of new rows."""
    has_levels = (await session.execute(select(LevelRequirement.level).limit(1))).first()
    if has_levels:
        return 0
    entries = default_ladder_entries()
    session.add_all(entries)
    await session.flush()
    return len(entries)


async def init_defaults(session: AsyncSession = None):
    """Initialize default database values."""
    logger.info("Initializing default database values...")

    if session is None:
        async with AsyncSessionLocal() as own_session:
            return await init_defaults(own_session)

    difficulties = await seed_difficulties(session)
    levels = await seed_level_ladder(session)
    await session.commit()

    for key, value in DEFAULT_SETTINGS.items():
        if await data_service.get_setting(session, key) is None:
            await data_service.set_setting(session, key, value)
            logger.info(f"Set default setting {key}={value}")

    logger.info(f"Default values initialized ({difficulties} difficulties, {levels} levels added)")
    return {"difficulties": difficulties, "levels": levels}


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(init_defaults())
