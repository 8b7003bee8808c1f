"""
Auth endpoints - admin login.
"""
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, status
import structlog

from api.dependencies import DatabaseSession
from api.models.user import LoginRequest
from api.services.auth_service import AuthService

logger = structlog.get_logger()
router = APIRouter()


@router.post(
    "/login",
    status_code=status.HTTP_200_OK,
    summary="Log in",
    description="Exchange admin credentials for a bearer token.",
    responses={
        400: {"description": "Username or password missing"},
        401: {"description": "Invalid credentials"},
    },
)
async def login(body: LoginRequest, db: DatabaseSession) -> Dict[str, Any]:
    """Validate credentials and return a signed JWT."""
    if not body.username or not body.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username and password are required",
        )

    token = await AuthService.authenticate(db, body.username, body.password)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    return {"success": True, "token": token}
