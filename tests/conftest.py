# tests/conftest.py

"""
Shared fixtures for the Catalog Service tests.
Every test gets its own SQLite database file and media root under pytest's
tmp_path, so tests are isolated without a running database server.
"""

import logging

import pytest
from fastapi.testclient import TestClient

from catalog_service.config import Settings
from catalog_service.db import StorageGateway
from catalog_service.main import create_app
from catalog_service.media import MediaStore

# Suppress noisy logs from SQLAlchemy/FastAPI during tests for cleaner output
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
logging.getLogger("fastapi").setLevel(logging.WARNING)

ADMIN_AUTH = ("admin", "s3cret-pass")

PNG_HEADER = b"\x89PNG\r\n\x1a\n"
JPEG_HEADER = b"\xff\xd8\xff\xe0"


def png_bytes(size: int = 2048) -> bytes:
    """A payload of `size` bytes that sniffs as PNG."""
    return PNG_HEADER + b"\x00" * (size - len(PNG_HEADER))


def jpeg_bytes(size: int = 2048) -> bytes:
    return JPEG_HEADER + b"\x00" * (size - len(JPEG_HEADER))


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'catalog.db'}",
        admin_username=ADMIN_AUTH[0],
        admin_password=ADMIN_AUTH[1],
        media_root=str(tmp_path / "uploads"),
        db_connect_retries=1,
        db_connect_retry_delay=0,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    """
    Provides a TestClient for making HTTP requests to the FastAPI application.
    The TestClient manages the app's startup/shutdown events.
    """
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def gateway(settings):
    gw = StorageGateway(settings.database_url)
    gw.connect()
    yield gw
    gw.dispose()


@pytest.fixture
def media(settings):
    store = MediaStore(settings.media_root, max_bytes=settings.max_upload_bytes)
    store.ensure_root()
    return store
