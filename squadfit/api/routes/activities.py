"""Activity logging and member progress route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from squadfit.api.routes import limiter, to_http_exception, ACTIVITY_RATE_LIMIT
from squadfit.database.db import get_db_session
from squadfit.database.unit_of_work import SqlAlchemyUnitOfWork
from squadfit.models.schemas import (
    ActivityHistoryResponse,
    ActivityResponse,
    LogActivityRequest,
    MemberProgressResponse,
)
from squadfit.services import progression_service
from squadfit.utils.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/members/{member_id}/activities", response_model=ActivityResponse, status_code=201)
@limiter.limit(ACTIVITY_RATE_LIMIT)
async def log_activity(
    request: Request,
    member_id: str,
    payload: LogActivityRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Log an activity for a member.

    Points, level, team totals and the activity record are applied in one
    transaction. Resubmitting with the same idempotency_key replays the
    stored result with duplicate=true. 409 means the submission was not
    applied and can be retried as a whole.
    """
    try:
        result = await progression_service.log_activity(
            SqlAlchemyUnitOfWork(session),
            member_id=member_id,
            exercise_id=payload.exercise_id,
            challenge_id=payload.challenge_id,
            measurements=payload.measurements(),
            idempotency_key=payload.idempotency_key,
        )
        return result.to_dict()
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "logging activity")


@router.get("/api/members/{member_id}/activities", response_model=ActivityHistoryResponse)
async def get_activity_history(
    member_id: str,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    cursor: Optional[str] = None,
    session: AsyncSession = Depends(get_db_session),
):
    """Get a member's activity log, newest first."""
    try:
        return await progression_service.get_activity_history(session, member_id, limit, cursor)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "getting activity history")


@router.get("/api/members/{member_id}/progress", response_model=MemberProgressResponse)
async def get_member_progress(member_id: str, session: AsyncSession = Depends(get_db_session)):
    """Get a member's points, level and distance to the next level."""
    try:
        return await progression_service.get_member_progress(SqlAlchemyUnitOfWork(session), member_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "getting member progress")
