"""
Shared fixtures for MO Gallery tests.
"""
import os
import tempfile
from io import BytesIO

# Settings are read at import time, so point them at a scratch area first
_TEST_ROOT = tempfile.mkdtemp(prefix="mo_gallery_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_ROOT}/gallery_test.db"
os.environ["UPLOAD_DIR"] = f"{_TEST_ROOT}/uploads"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ.pop("ADMIN_USERNAME", None)
os.environ.pop("ADMIN_PASSWORD", None)

import httpx
import pytest
from PIL import ExifTags, Image

from api.main import app
from api.models.database import AsyncSessionLocal, Base, engine
from api.services.auth_service import AuthService

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "correct horse battery staple"


def make_jpeg(width: int = 1600, height: int = 1200, make: str = "Canon", model: str = "EOS R5") -> bytes:
    """Build a JPEG with a small EXIF block."""
    image = Image.new("RGB", (width, height), color=(200, 80, 40))
    exif = Image.Exif()
    exif[ExifTags.Base.Make] = make
    exif[ExifTags.Base.Model] = model
    exif[ExifTags.Base.Software] = "pytest"
    exif[ExifTags.Base.Orientation] = 1

    out = BytesIO()
    image.save(out, format="JPEG", exif=exif)
    return out.getvalue()


@pytest.fixture
def sample_jpeg() -> bytes:
    return make_jpeg()


@pytest.fixture
async def test_db():
    """Fresh schema for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield

    await engine.dispose()


@pytest.fixture
async def db_session(test_db):
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
async def test_client(test_db):
    """HTTP client bound to the ASGI app."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def admin_token(test_client) -> str:
    async with AsyncSessionLocal() as session:
        await AuthService.ensure_admin(session, ADMIN_USERNAME, ADMIN_PASSWORD)

    response = await test_client.post(
        "/api/auth/login",
        json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return response.json()["token"]


@pytest.fixture
def auth_headers(admin_token) -> dict:
    return {"Authorization": f"Bearer {admin_token}"}
