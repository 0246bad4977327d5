"""
Pytest configuration and fixtures for Photo Log tests
"""
import io
import os
import shutil
import sqlite3
import tempfile

import pytest
from PIL import Image

# Test-friendly environment prior to importing the app
_TMP_DIR = tempfile.mkdtemp(prefix="photolog-test-")
TEST_DB_PATH = os.path.join(_TMP_DIR, "test.db")
MEDIA_ROOT = os.path.join(_TMP_DIR, "media")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["MEDIA_ROOT"] = MEDIA_ROOT
os.environ["ENVIRONMENT"] = "DEV"
os.environ["DEBUG"] = "false"
os.environ["ALLOWED_CATEGORIES"] = ""
os.environ["ORPHAN_SWEEP_INTERVAL_SECONDS"] = "0"
os.environ["PROMETHEUS_PUSHGATEWAY_URL"] = ""
os.environ["LOG_DIR"] = ""

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from photolog.database import create_engine_for_url, init_db  # noqa: E402
from photolog.services.storage import LocalFileStorage  # noqa: E402
from photolog.services.transcoder import MediaTranscoder  # noqa: E402


def make_image_bytes(width=400, height=300, fmt="JPEG", mode="RGB", color=(200, 30, 30)):
    """Encode a solid-colour image in memory."""
    if mode in ("RGBA", "LA"):
        color = color + (128,) if mode == "RGBA" else (100, 128)
    elif mode == "L":
        color = 100
    image = Image.new(mode, (width, height), color)
    buf = io.BytesIO()
    image.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture(scope="session")
def client():
    """App client with lifespan run (tables created, upload root present)."""
    from photolog.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def clean_state(client):
    """Empty photos table and upload tree before each API test."""
    conn = sqlite3.connect(TEST_DB_PATH)
    try:
        conn.execute("DELETE FROM photos")
        conn.commit()
    finally:
        conn.close()
    upload_dir = os.path.join(MEDIA_ROOT, "uploads")
    shutil.rmtree(upload_dir, ignore_errors=True)
    os.makedirs(upload_dir, exist_ok=True)
    yield client


@pytest.fixture
def storage(tmp_path):
    return LocalFileStorage(tmp_path)


@pytest.fixture
def transcoder():
    return MediaTranscoder()


@pytest.fixture
async def db_session(tmp_path):
    """Fresh SQLite database per test, independent of the app's engine."""
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'service.db'}")
    await init_db(bind=engine)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with session_maker() as session:
            yield session
    finally:
        await engine.dispose()
