"""Leaderboard route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from squadfit.api.auth_dependencies import require_admin
from squadfit.api.routes import to_http_exception
from squadfit.database.db import get_db_session
from squadfit.models.schemas import LeaderboardRebuildRequest, LeaderboardResponse
from squadfit.services import leaderboard_service
from squadfit.services.leaderboard_service import LeaderboardScope
from squadfit.utils.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/leaderboards", response_model=LeaderboardResponse)
async def get_leaderboard(
    season_id: Optional[int] = None,
    challenge_id: Optional[int] = None,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    cursor: Optional[str] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Get a ranked leaderboard page for a season or a challenge.

    Exactly one of season_id / challenge_id must be given. Pass next_cursor
    from the previous page to continue.
    """
    try:
        scope = LeaderboardScope(season_id=season_id, challenge_id=challenge_id)
        return await leaderboard_service.get_leaderboard(session, scope, limit, cursor)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "getting leaderboard")


@router.get("/api/leaderboards/snapshot")
async def get_leaderboard_snapshot(
    season_id: Optional[int] = None,
    challenge_id: Optional[int] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """Get the persisted leaderboard rows written by the last rebuild."""
    try:
        scope = LeaderboardScope(season_id=season_id, challenge_id=challenge_id)
        return await leaderboard_service.get_persisted_leaderboard(session, scope)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "getting leaderboard snapshot")


@router.post("/api/leaderboards/rebuild", dependencies=[Depends(require_admin)])
async def rebuild_leaderboards(
    payload: LeaderboardRebuildRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Recompute persisted leaderboard rows (admin).

    Body: {season_id?: int, challenge_id?: int}. With neither, every season
    and challenge is rebuilt.
    """
    try:
        if payload.season_id is None and payload.challenge_id is None:
            counts = await leaderboard_service.rebuild_all_leaderboards(session)
        else:
            scope = LeaderboardScope(season_id=payload.season_id, challenge_id=payload.challenge_id)
            counts = {scope.cache_key: await leaderboard_service.rebuild_leaderboard_entries(session, scope)}
        return {"status": "success", "rebuilt": counts}
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "rebuilding leaderboards")
