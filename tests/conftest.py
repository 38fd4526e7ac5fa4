import os

# Point the app at SQLite before anything imports workpilot.database.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-the-workpilot-suite")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from workpilot.database import get_db
from workpilot.db_models import Base
from workpilot.main import app
from workpilot.repository import PostgreSQLWorkPilotRepository

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def repo(db_session):
    return PostgreSQLWorkPilotRepository(db_session)


@pytest.fixture
def client(db_session, monkeypatch):
    def override_get_db():
        yield db_session

    monkeypatch.setitem(app.dependency_overrides, get_db, override_get_db)
    return TestClient(app)


def _register(client, email="owner@example.com", password="password123", company_name="Acme"):
    """Register through the API and return Authorization headers for the new user."""
    response = client.post("/api/v1/auth/register", json={
        "firstname": "Ada",
        "lastname": "Yilmaz",
        "email": email,
        "password": password,
        "companyName": company_name,
    })
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def register_user(client):
    def register(**kwargs):
        return _register(client, **kwargs)
    return register


@pytest.fixture
def auth_headers(register_user):
    return register_user()
