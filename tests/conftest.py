"""
Shared pytest fixtures.

Uses a SQLite file database so no Postgres is required for tests. Every
table is emptied after each test.
"""
import os
from datetime import datetime, timedelta, timezone

SQLITE_URL = "sqlite:///./test_watchtime.db"

# Must be set before watchtime.core.config builds its settings singleton.
os.environ.setdefault("DATABASE_URL", SQLITE_URL)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

import watchtime.models  # noqa: F401  (registers tables on Base.metadata)
from watchtime.core.errors import PlatformRequestError
from watchtime.db.base import Base, get_db
from watchtime.main import app
from watchtime.models.creator import Creator, Platform
from watchtime.services.platforms.base import PlatformClient


engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Fixed poll clock for deterministic tests: 2026-03-10 12:00 UTC.
BASE_TIME = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def at(minutes: float = 0, seconds: float = 0) -> datetime:
    return BASE_TIME + timedelta(minutes=minutes, seconds=seconds)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class FakeClient(PlatformClient):
    """In-memory platform client.

    ``verdicts`` maps identifier -> verdict; identifiers not in it are left
    out of the response. ``fail_next`` makes the next N calls raise a
    transient PlatformRequestError.
    """

    def __init__(self, verdicts=None, platform="twitch", max_batch_size=100):
        self.platform = platform
        self.max_batch_size = max_batch_size
        self.verdicts = dict(verdicts or {})
        self.fail_next = 0
        self.calls: list[list[str]] = []
        self.closed = False

    def check_live(self, identifiers):
        self.calls.append(list(identifiers))
        if self.fail_next > 0:
            self.fail_next -= 1
            raise PlatformRequestError(self.platform, "GET /streams returned 503", status_code=503)
        return {i: self.verdicts[i] for i in identifiers if i in self.verdicts}

    def close(self):
        self.closed = True


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def make_creator(db):
    """Factory: insert a registry row and return it."""
    def _make(platform_id: str, platform: Platform = Platform.twitch, display_name: str | None = None):
        creator = Creator(
            platform=platform,
            platform_id=platform_id,
            username=platform_id,
            display_name=display_name or f"creator-{platform_id}",
        )
        db.add(creator)
        db.commit()
        return creator
    return _make


@pytest.fixture()
def fake_client():
    return FakeClient()
