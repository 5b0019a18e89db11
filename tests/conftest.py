"""Shared pytest fixtures for redditbg tests.

REDDITBG_DATA_DIR is pointed at a throwaway directory before any redditbg
module is imported, so nothing in the suite touches the real app-data dirs.
"""

import io
import os
import tempfile
from pathlib import Path

os.environ.setdefault("REDDITBG_DATA_DIR", tempfile.mkdtemp(prefix="redditbg-test-"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402

from redditbg.db import init_db  # noqa: E402
from services.control_api.main import app, get_db_session, override_session_factory  # noqa: E402


@pytest.fixture
def temp_db():
    """Create a temporary database for testing.

    Yields:
        tuple: (db_path, engine, SessionFactory)
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        engine, SessionFactory = init_db(db_path)
        override_session_factory(SessionFactory)
        yield db_path, engine, SessionFactory
        engine.dispose()


@pytest.fixture
def images_dir(tmp_path, monkeypatch):
    """Point the image cache at a temporary directory.

    Yields:
        Path: The (existing, empty) cache directory.
    """
    directory = tmp_path / "images"
    directory.mkdir()
    monkeypatch.setattr("redditbg.utils.paths.IMAGES_DIR", directory)
    yield directory


@pytest.fixture
def client(temp_db, images_dir):
    """Create a FastAPI test client with temp database and image cache.

    Yields:
        tuple: (test_client, SessionFactory)
    """
    db_path, engine, SessionFactory = temp_db

    def get_test_session():
        session = SessionFactory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db_session] = get_test_session

    with TestClient(app) as client:
        yield client, SessionFactory

    app.dependency_overrides.clear()


def make_image_bytes(width: int, height: int, fmt: str = "PNG", color=(40, 90, 160)) -> bytes:
    """Encode a solid-color image of the given size."""
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def image_bytes():
    """Factory fixture: image_bytes(width, height, fmt="PNG") -> bytes."""
    return make_image_bytes
