"""Pytest configuration and fixtures."""

import os
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.config import Settings, get_settings
from src.database import Base, get_db
from src.main import app

# Use test database - PostgreSQL in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    # Running in Docker - use PostgreSQL test database
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace(
        "/planning_poker", "/planning_poker_test"
    )
else:
    # Running locally - use SQLite
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PASSWORD = "testpass123"  # noqa: S105


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        from sqlalchemy_utils import create_database, database_exists

        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def settings():
    """Settings whose cookies the test client will store and send back."""
    # No Domain attribute and no Secure flag so cookies survive on http://testserver
    return Settings(
        database_url=SQLALCHEMY_DATABASE_URL,
        cookie_secret="test-cookie-secret",  # noqa: S106
        app_domain="",
        secure_cookie_flag=False,
        allow_guests=True,
        allow_registration=True,
        ldap_enabled=False,
        smtp_enabled=False,
        app_url="https://poker.example.com",
    )


@pytest.fixture(autouse=True)
def mock_send_email():
    """Keep outgoing email off the Celery broker."""
    with patch("src.tasks.email.send_email.delay") as mock_delay:
        yield mock_delay


@pytest.fixture(scope="function")
def client(db, settings):
    """Create a test client with database and settings overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def registered_user(client):
    """Register a user through the API and return its data; the client keeps the session."""
    response = client.post(
        "/api/auth/register",
        json={
            "warriorName": "Test User",
            "warriorEmail": "test@example.com",
            "warriorPassword1": TEST_PASSWORD,
            "warriorPassword2": TEST_PASSWORD,
        },
    )
    assert response.status_code == 200
    return response.json()["data"]
