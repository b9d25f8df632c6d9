"""
Test fixtures for Learning Quest.

Provides app, client, teacher_client and storage fixtures. The app uses
file-based SQLite; ``storage`` runs the same test against SQLite and the
in-memory adapter.
"""

from __future__ import annotations

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite for testing."""
    from app import create_app

    db_file = str(tmp_path / "test.db")
    app = create_app({
        "TESTING": True,
        "DATABASE": db_file,
        "STORAGE_BACKEND": "sqlite",
        "SECRET_KEY": "test-secret-key",
        "REDIS_URL": "",
    })
    yield app
    app.extensions["storage"].close()


@pytest.fixture
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


@pytest.fixture
def app_storage(app):
    return app.extensions["storage"]


@pytest.fixture
def student(app_storage):
    """A student user with a profile holding the default three spins."""
    user = app_storage.upsert_user({"username": "mia", "display_name": "Mia", "role": "student"})
    return app_storage.create_student_profile({"user_id": user.id})


@pytest.fixture
def teacher_client(app, app_storage):
    """Authenticated test client logged in as a teacher."""
    from werkzeug.security import generate_password_hash

    app_storage.upsert_user({
        "username": "ms.frizzle",
        "display_name": "Ms. Frizzle",
        "role": "teacher",
        "password_hash": generate_password_hash("TeacherPass1"),
    })

    client = app.test_client()
    with client:
        resp = client.post("/api/login", json={"username": "ms.frizzle", "password": "TeacherPass1"})
        assert resp.status_code == 200
        yield client


@pytest.fixture(params=["sqlite", "memory"])
def storage(request, tmp_path):
    """Each storage adapter in turn, freshly seeded."""
    if request.param == "sqlite":
        from sql_storage import SQLiteStorage
        backend = SQLiteStorage(str(tmp_path / "storage.db"))
    else:
        from memory_storage import MemoryStorage
        backend = MemoryStorage()
    yield backend
    backend.close()


@pytest.fixture
def profile(storage):
    user = storage.upsert_user({"username": "leo", "display_name": "Leo"})
    return storage.create_student_profile({"user_id": user.id})
