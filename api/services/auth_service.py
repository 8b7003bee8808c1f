"""
Authentication service: credential checks and admin bootstrap.
"""
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from api.models.user import User
from api.utils.security import create_access_token, hash_password, verify_password

logger = structlog.get_logger()


class AuthService:
    """Service for admin authentication."""

    @staticmethod
    async def authenticate(session: AsyncSession, username: str, password: str) -> Optional[str]:
        """
        Check credentials and issue a token.

        Returns:
            Signed JWT, or None if the credentials are invalid
        """
        result = await session.execute(select(User).where(User.username == username))
        user = result.scalar_one_or_none()

        if not user or not verify_password(password, user.password):
            logger.info("Login failed", username=username)
            return None

        return create_access_token({"sub": user.id, "username": user.username})

    @staticmethod
    async def ensure_admin(session: AsyncSession, username: Optional[str], password: Optional[str]) -> Optional[User]:
        """
        Create the first admin user when none exists.

        Does nothing when credentials are not configured or users exist.
        """
        if not username or not password:
            return None

        count = await session.scalar(select(func.count(User.id)))
        if count:
            return None

        user = User(username=username, password=hash_password(password))
        session.add(user)
        await session.commit()

        logger.info("Created admin user", username=username)
        return user
