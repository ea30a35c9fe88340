#!/usr/bin/env python3
"""
Rebuild persisted leaderboard entries for every season and challenge.

This script:
1. Fetches all seasons and challenges from the database
2. Recomputes each scope's ranking from the activity log
3. Replaces the scope's leaderboard_entries rows
4. Prints a summary
"""

import asyncio
import os
import sys

# Add project root to path (so squadfit.* imports work)
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from sqlalchemy import select
from squadfit.database.db import AsyncSessionLocal
from squadfit.database.models import Challenge, Season
from squadfit.services import leaderboard_service
from squadfit.services.leaderboard_service import LeaderboardScope


async def rebuild_all_leaderboards():
    """Rebuild every season and challenge leaderboard, reporting per scope."""
    async with AsyncSessionLocal() as session:
        season_ids = (await session.execute(select(Season.id).order_by(Season.id))).scalars().all()
        challenge_ids = (await session.execute(select(Challenge.id).order_by(Challenge.id))).scalars().all()
        scopes = [LeaderboardScope(season_id=s) for s in season_ids] + [
            LeaderboardScope(challenge_id=c) for c in challenge_ids
        ]

        if not scopes:
            print("❌ No seasons or challenges found in the database.")
            return

        print("=" * 60)
        print(f"📊 Rebuilding {len(scopes)} leaderboard(s)")
        print("=" * 60)

        successful = 0
        failed = []
        for idx, scope in enumerate(scopes, 1):
            try:
                count = await leaderboard_service.rebuild_leaderboard_entries(session, scope)
                print(f"[{idx}/{len(scopes)}] ✓ {scope.cache_key}: {count} entries")
                successful += 1
            except Exception as e:
                await session.rollback()
                print(f"[{idx}/{len(scopes)}] ❌ {scope.cache_key}: {str(e)}")
                failed.append((scope.cache_key, str(e)))

        print("=" * 60)
        print(f"✅ Successful: {successful}")
        print(f"❌ Failed: {len(failed)}")
        for key, error in failed:
            print(f"  - {key}: {error}")


if __name__ == "__main__":
    asyncio.run(rebuild_all_leaderboards())
