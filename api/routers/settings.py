"""
Settings endpoints - public site settings and the admin key/value store.
"""
from typing import Any, Dict

from fastapi import APIRouter, Body
import structlog

from api.dependencies import CurrentUser, DatabaseSession
from api.services.settings_service import SettingsService

logger = structlog.get_logger()
router = APIRouter()


@router.get(
    "/public",
    summary="Public settings",
    description="Site title and CDN domain; no authentication required.",
)
async def get_public_settings(db: DatabaseSession) -> Dict[str, Any]:
    return {"success": True, "data": await SettingsService.get_public(db)}


@router.get(
    "",
    summary="All settings",
    responses={401: {"description": "Authentication required"}},
)
async def get_settings(db: DatabaseSession, user: CurrentUser) -> Dict[str, Any]:
    return {"success": True, "data": await SettingsService.get_admin(db)}


@router.patch(
    "",
    summary="Update settings",
    description="Upsert each key in the body; values are stored as strings.",
    responses={
        400: {"description": "Body is not an object"},
        401: {"description": "Authentication required"},
    },
)
async def update_settings(
    db: DatabaseSession,
    user: CurrentUser,
    body: Dict[str, Any] = Body(...),
) -> Dict[str, Any]:
    data = await SettingsService.update(db, body)
    logger.info("Settings changed", user=user.username, keys=sorted(body.keys()))
    return {"success": True, "data": data}
