"""
Pytest configuration and fixtures.
Points the app at an isolated SQLite database before anything imports it.
"""
import os
import tempfile

import pytest

TEST_DB_PATH = os.path.join(tempfile.gettempdir(), "roomdesk_test.db")
if os.path.exists(TEST_DB_PATH):
    os.remove(TEST_DB_PATH)
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["DASHBOARD_ENABLED"] = "false"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["API_KEY"] = ""
os.environ["GATEWAY_BACKEND"] = "sql"

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import text  # noqa: E402

from roomdesk.config import settings  # noqa: E402
from roomdesk.db import Base, SessionLocal, engine, init_database  # noqa: E402
from roomdesk.main import app  # noqa: E402
from roomdesk.models import Property, Room  # noqa: E402

init_database(engine)


@pytest.fixture(autouse=True)
def clear_db():
    """Clear all data from all tables before each test"""
    with engine.connect() as conn:
        trans = conn.begin()
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        trans.commit()
    yield


@pytest.fixture
def test_db():
    """Provide a database session for testing"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def seeded(test_db):
    """Main House with two suites, Lake Lodge with one cabin."""
    main = Property(id=1, name="Main House")
    lodge = Property(id=2, name="Lake Lodge")
    test_db.add_all([main, lodge])
    test_db.flush()
    test_db.add_all([
        Room(id=10, property_id=1, category="Suite", name="A"),
        Room(id=11, property_id=1, category="Suite", name="B"),
        Room(id=20, property_id=2, category="Cabin", name="Pine"),
    ])
    test_db.commit()
    return {"properties": [1, 2], "rooms": [10, 11, 20]}


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def dashboard_client(seeded, monkeypatch):
    """Client with the startup hook run, so the dashboard session is live."""
    monkeypatch.setattr(settings, "DASHBOARD_ENABLED", True)
    monkeypatch.setattr(settings, "REFRESH_INTERVAL_SECONDS", 3600.0)
    monkeypatch.setattr(settings, "FOREGROUND_REFRESH_DELAY_SECONDS", 0.0)
    monkeypatch.setattr(settings, "TOGGLE_RECHECK_DELAY_SECONDS", 3600.0)
    with TestClient(app) as c:
        yield c
