"""Catalog, level ladder and settings route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from squadfit.api.auth_dependencies import require_admin
from squadfit.api.routes import to_http_exception
from squadfit.database.db import get_db_session
from squadfit.models.schemas import (
    CreateExerciseRequest,
    CreateLevelRequest,
    DifficultyResponse,
    ExerciseResponse,
    LevelResponse,
)
from squadfit.services import data_service, settings_service

logger = logging.getLogger(__name__)
router = APIRouter()


# ---------------------------------------------------------------------------
# Exercise catalog
# ---------------------------------------------------------------------------


@router.get("/api/exercises", response_model=List[ExerciseResponse])
async def list_exercises(session: AsyncSession = Depends(get_db_session)):
    try:
        return await data_service.list_exercises(session)
    except Exception as e:
        raise to_http_exception(e, "listing exercises")


@router.get("/api/difficulties", response_model=List[DifficultyResponse])
async def list_difficulties(session: AsyncSession = Depends(get_db_session)):
    try:
        return await data_service.list_difficulties(session)
    except Exception as e:
        raise to_http_exception(e, "listing difficulties")


@router.post(
    "/api/admin/exercises",
    response_model=ExerciseResponse,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
async def create_exercise(payload: CreateExerciseRequest, session: AsyncSession = Depends(get_db_session)):
    """Add an exercise to the catalog (admin). The difficulty id is its points multiplier."""
    try:
        return await data_service.create_exercise(
            session,
            name=payload.name,
            difficulty_id=payload.difficulty_id,
            description=payload.description,
            unit=payload.unit,
        )
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "creating exercise")


@router.delete("/api/admin/exercises/{exercise_id}", dependencies=[Depends(require_admin)])
async def delete_exercise(exercise_id: int, session: AsyncSession = Depends(get_db_session)):
    """Remove an exercise (admin). 409 while activity logs reference it."""
    try:
        await data_service.delete_exercise(session, exercise_id)
        return {"success": True, "message": "Exercise deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "deleting exercise")


# ---------------------------------------------------------------------------
# Level ladder
# ---------------------------------------------------------------------------


@router.get("/api/levels", response_model=List[LevelResponse])
async def list_levels(session: AsyncSession = Depends(get_db_session)):
    try:
        return await data_service.list_levels(session)
    except Exception as e:
        raise to_http_exception(e, "listing levels")


@router.post(
    "/api/admin/levels",
    response_model=LevelResponse,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
async def create_level(payload: CreateLevelRequest, session: AsyncSession = Depends(get_db_session)):
    """Append a level to the top of the ladder (admin)."""
    try:
        return await data_service.create_level(
            session,
            level=payload.level,
            points_required=payload.points_required,
            description=payload.description,
            rewards=payload.rewards,
        )
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "creating level")


@router.delete("/api/admin/levels/{level}", dependencies=[Depends(require_admin)])
async def delete_level(level: int, session: AsyncSession = Depends(get_db_session)):
    """Remove the top level of the ladder (admin). 409 while anyone holds it."""
    try:
        await data_service.delete_level(session, level)
        return {"success": True, "message": "Level deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "deleting level")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@router.get("/api/admin/settings/{key}", dependencies=[Depends(require_admin)])
async def get_setting_value(key: str, session: AsyncSession = Depends(get_db_session)):
    """Get a setting value (admin)."""
    try:
        value = await data_service.get_setting(session, key)
        return {"key": key, "value": value}
    except Exception as e:
        raise to_http_exception(e, "getting setting")


@router.put("/api/admin/settings/{key}", dependencies=[Depends(require_admin)])
async def set_setting_value(key: str, request: Request, session: AsyncSession = Depends(get_db_session)):
    """Set a setting value (admin). Body: {"value": ...}"""
    try:
        body = await request.json()
        if "value" not in body:
            raise HTTPException(status_code=400, detail="value is required")
        await data_service.set_setting(session, key, str(body["value"]))
        await settings_service.invalidate_settings_cache()

        if key == "log_level":
            level_name = str(body["value"]).upper()
            logging.getLogger().setLevel(getattr(logging, level_name, logging.INFO))
            logger.info(f"Log level set to {level_name}")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "setting value")
