import os

# The app's own engine must never point at a real file during tests
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from tests.factories import OWNER_HEADERS  # noqa: E402
from torneos import config  # noqa: E402
from torneos.database import get_session  # noqa: E402
from torneos.main import app  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Models are registered by importing torneos.main (routes import them)
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables created and dropped per test
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(autouse=True)
def lock_dir(tmp_path, monkeypatch):
    """Tournament locks live in a per-test directory"""
    monkeypatch.setattr(config, "TOURNAMENT_LOCK_DIR", str(tmp_path / "locks"))
    monkeypatch.setattr(config, "TOURNAMENT_LOCK_TIMEOUT", 2.0)
    return tmp_path / "locks"


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema"""
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override MUST be set BEFORE TestClient() and stay in place for the
    entire duration, so the app never touches its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        client.headers.update(OWNER_HEADERS)
        yield client

    app.dependency_overrides.clear()

