"""Member profile and team membership route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from squadfit.api.routes import to_http_exception
from squadfit.database.db import get_db_session
from squadfit.models.schemas import MemberResponse, ProvisionMemberRequest, TeamMembershipResponse
from squadfit.services import data_service, team_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.put("/api/members/{member_id}", response_model=MemberResponse)
async def provision_member(
    member_id: str,
    payload: ProvisionMemberRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Create or update a member profile.

    Target of the identity provider's user webhook. A new member starts at
    level 1 with zero points; an existing member only gets profile fields
    updated.
    """
    try:
        return await data_service.provision_member(
            session,
            member_id=member_id,
            display_name=payload.display_name,
            avatar_url=payload.avatar_url,
        )
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "provisioning member")


@router.get("/api/members/{member_id}", response_model=MemberResponse)
async def get_member(member_id: str, session: AsyncSession = Depends(get_db_session)):
    try:
        return await data_service.get_member(session, member_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "getting member")


@router.delete("/api/members/{member_id}/team", response_model=TeamMembershipResponse)
async def leave_team(member_id: str, session: AsyncSession = Depends(get_db_session)):
    """Leave the current team. The member's contribution is removed from the team total."""
    try:
        return await team_service.leave_team(session, member_id)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "leaving team")
