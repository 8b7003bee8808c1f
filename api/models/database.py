"""
Database engine, session factory and schema bootstrap.
"""
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
import structlog

from api.config import settings

logger = structlog.get_logger()


class Base(DeclarativeBase):
    """Declarative base for all models."""
    pass


def _ensure_sqlite_dir(url: str) -> None:
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database and parsed.database != ":memory:":
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)


_ensure_sqlite_dir(settings.database_url_async)

engine = create_async_engine(settings.database_url_async, echo=False)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session that is closed after use."""
    async with AsyncSessionLocal() as session:
        yield session


async def init_db() -> None:
    """Create tables that do not exist yet."""
    # Import models so they register on Base.metadata
    from api.models import photo, setting, user  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database initialized", url=make_url(settings.database_url_async).render_as_string(hide_password=True))
