"""
FastAPI dependencies for authentication and database access.

Uses Annotated type hints with Doc for better documentation.
"""
from typing import Annotated, AsyncGenerator, Optional

from annotated_doc import Doc
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from api.models.database import get_session
from api.models.user import User
from api.utils.security import verify_token

logger = structlog.get_logger()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Get database session dependency.

    Sessions are closed automatically after the request completes.
    """
    async for session in get_session():
        yield session


DatabaseSession = Annotated[
    AsyncSession,
    Depends(get_db),
    Doc("Async database session for database operations")
]


async def get_bearer_token(
    authorization: Annotated[
        Optional[str],
        Header(description="Bearer token authorization"),
    ] = None,
) -> Optional[str]:
    """Extract the token from an Authorization: Bearer header."""
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return None


async def get_current_user(
    request: Request,
    db: DatabaseSession,
    token: Annotated[Optional[str], Depends(get_bearer_token)] = None,
) -> User:
    """
    Require a valid JWT belonging to an existing user.

    Raises:
        HTTPException: 401 if the token is missing, invalid, or the user is gone
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = verify_token(token)
    except ValueError as e:
        logger.warning(
            "Invalid token",
            error=str(e),
            client_ip=request.client.host if request.client else "unknown",
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await db.get(User, payload["sub"])
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


CurrentUser = Annotated[
    User,
    Depends(get_current_user),
    Doc("Authenticated admin user")
]
