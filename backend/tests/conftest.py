"""
Pytest configuration and fixtures
"""

import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from priory.config import Settings
from priory.main import create_app


@pytest.fixture
def test_settings(tmp_path):
    """Settings rooted in a per-test storage directory"""
    return Settings(
        STORAGE_PATH=str(tmp_path / "storage"),
        SITE_URL="http://testserver",
        MAX_UPLOAD_SIZE=1024 * 1024,
    )


@pytest.fixture
def app(test_settings):
    """Isolated application with its own rate limit store and records"""
    return create_app(test_settings)


@pytest.fixture
def client(app):
    """FastAPI test client fixture"""
    return TestClient(app)


@pytest.fixture
def png_bytes():
    """A small 4x3 PNG image"""
    buffer = io.BytesIO()
    Image.new("RGB", (4, 3), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()
