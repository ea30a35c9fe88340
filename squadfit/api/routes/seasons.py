"""Season and challenge route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from squadfit.api.auth_dependencies import require_admin
from squadfit.api.routes import to_http_exception
from squadfit.database.db import get_db_session
from squadfit.models.schemas import (
    ChallengeResponse,
    CreateChallengeRequest,
    CreateSeasonRequest,
    SeasonResponse,
    UpdateChallengeRequest,
    UpdateSeasonRequest,
)
from squadfit.services import data_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/api/seasons",
    response_model=SeasonResponse,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
async def create_season(payload: CreateSeasonRequest, session: AsyncSession = Depends(get_db_session)):
    """
    Create a season (admin).

    starts_at must come before ends_at. Windows are half-open: a season is
    active from starts_at up to, but not including, ends_at.
    """
    try:
        return await data_service.create_season(
            session,
            name=payload.name,
            starts_at=payload.starts_at,
            ends_at=payload.ends_at,
            is_active=payload.is_active,
        )
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "creating season")


@router.get("/api/seasons", response_model=List[SeasonResponse])
async def list_seasons(session: AsyncSession = Depends(get_db_session)):
    try:
        return await data_service.list_seasons(session)
    except Exception as e:
        raise to_http_exception(e, "listing seasons")


@router.get("/api/seasons/{season_id}", response_model=SeasonResponse)
async def get_season(season_id: int, session: AsyncSession = Depends(get_db_session)):
    try:
        return await data_service.get_season(session, season_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "getting season")


@router.put("/api/seasons/{season_id}", response_model=SeasonResponse, dependencies=[Depends(require_admin)])
async def update_season(
    season_id: int,
    payload: UpdateSeasonRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Update a season (admin). Only provided fields change."""
    try:
        return await data_service.update_season(session, season_id, **payload.model_dump(exclude_none=True))
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "updating season")


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


@router.post(
    "/api/seasons/{season_id}/challenges",
    response_model=ChallengeResponse,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
async def create_challenge(
    season_id: int,
    payload: CreateChallengeRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Create a challenge inside a season (admin). points_multiplier must be >= 1."""
    try:
        return await data_service.create_challenge(
            session,
            season_id=season_id,
            name=payload.name,
            starts_at=payload.starts_at,
            ends_at=payload.ends_at,
            description=payload.description,
            is_team_based=payload.is_team_based,
            points_multiplier=payload.points_multiplier,
        )
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "creating challenge")


@router.get("/api/seasons/{season_id}/challenges", response_model=List[ChallengeResponse])
async def list_challenges(season_id: int, session: AsyncSession = Depends(get_db_session)):
    try:
        return await data_service.list_challenges(session, season_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "listing challenges")


@router.get("/api/challenges/active", response_model=List[ChallengeResponse])
async def list_active_challenges(session: AsyncSession = Depends(get_db_session)):
    """Challenges currently accepting submissions, ending soonest first."""
    try:
        return await data_service.list_active_challenges(session)
    except Exception as e:
        raise to_http_exception(e, "listing active challenges")


@router.get("/api/challenges/{challenge_id}", response_model=ChallengeResponse)
async def get_challenge(challenge_id: int, session: AsyncSession = Depends(get_db_session)):
    try:
        return await data_service.get_challenge(session, challenge_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "getting challenge")


@router.put(
    "/api/challenges/{challenge_id}",
    response_model=ChallengeResponse,
    dependencies=[Depends(require_admin)],
)
async def update_challenge(
    challenge_id: int,
    payload: UpdateChallengeRequest,
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await data_service.update_challenge(
            session, challenge_id, **payload.model_dump(exclude_none=True)
        )
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "updating challenge")


@router.delete("/api/challenges/{challenge_id}", dependencies=[Depends(require_admin)])
async def delete_challenge(challenge_id: int, session: AsyncSession = Depends(get_db_session)):
    """Delete a challenge (admin). 409 if activity has already been logged against it."""
    try:
        await data_service.delete_challenge(session, challenge_id)
        return {"success": True, "message": "Challenge deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "deleting challenge")
