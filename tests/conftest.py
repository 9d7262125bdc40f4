from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from notesync.config import Settings
from notesync.db import connect, init_db
from notesync.web import create_app


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path):
    return Settings(db_path=tmp_path / "notes.db")


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def conn(tmp_path):
    with connect(tmp_path / "store.db") as conn:
        init_db(conn)
        yield conn
