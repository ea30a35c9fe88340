"""Team route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from squadfit.api.auth_dependencies import require_admin
from squadfit.api.routes import to_http_exception
from squadfit.database.db import get_db_session
from squadfit.models.schemas import (
    CreateTeamRequest,
    JoinTeamRequest,
    TeamMembershipResponse,
    TeamResponse,
    TeamStandingsResponse,
)
from squadfit.services import team_service
from squadfit.utils.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/teams/standings", response_model=TeamStandingsResponse)
async def get_team_standings(
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    cursor: Optional[str] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """Teams ranked by total points."""
    try:
        return await team_service.get_team_standings(session, limit, cursor)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "getting team standings")


@router.post(
    "/api/teams",
    response_model=TeamResponse,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
async def create_team(payload: CreateTeamRequest, session: AsyncSession = Depends(get_db_session)):
    try:
        return await team_service.create_team(session, payload.name, payload.description)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "creating team")


@router.get("/api/teams/{team_id}", response_model=TeamResponse)
async def get_team(team_id: int, session: AsyncSession = Depends(get_db_session)):
    """Get a team with its current members."""
    try:
        return await team_service.get_team(session, team_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "getting team")


@router.post("/api/teams/{team_id}/members", response_model=TeamMembershipResponse, status_code=201)
async def join_team(
    team_id: int,
    payload: JoinTeamRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Add a member to a team.

    409 if the member already belongs to a team. Points earned before
    joining do not count toward the team.
    """
    try:
        return await team_service.join_team(session, team_id, payload.member_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "joining team")
