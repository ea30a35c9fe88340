#!/usr/bin/env python3
"""
Seed the database with the difficulty scale, the default level ladder and a
starter exercise catalog.

Reads:
  - squadfit/seed/exercises.csv -> exercises table

Idempotent: existing exercises (matched by name) are left untouched.
"""

import asyncio
import csv
import os
import sys
from pathlib import Path

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from sqlalchemy import select
from squadfit.database.db import AsyncSessionLocal, init_database
from squadfit.database.init_defaults import init_defaults
from squadfit.database.models import Exercise


async def seed_exercises(session) -> int:
    """Seed exercises from CSV. Returns count of new rows."""
    csv_path = Path(project_root) / "squadfit" / "seed" / "exercises.csv"
    if not csv_path.exists():
        print(f"  CSV not found: {csv_path}")
        return 0

    created = 0
    with open(csv_path, "r", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            result = await session.execute(select(Exercise).where(Exercise.name == row["name"]))
            if result.scalar_one_or_none():
                continue
            session.add(
                Exercise(
                    name=row["name"],
                    difficulty_id=int(row["difficulty_id"]) if row.get("difficulty_id") else None,
                    unit=row.get("unit") or None,
                    description=row.get("description") or None,
                )
            )
            created += 1

    await session.commit()
    return created


async def main():
    await init_database()
    async with AsyncSessionLocal() as session:
        defaults = await init_defaults(session)
        print(f"✓ Difficulties added: {defaults['difficulties']}")
        print(f"✓ Levels added: {defaults['levels']}")

        exercises = await seed_exercises(session)
        print(f"✓ Exercises added: {exercises}")


if __name__ == "__main__":
    asyncio.run(main())
