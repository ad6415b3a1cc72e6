"""
Shared fixtures: an in-memory SQLite database and an authenticated API client.
"""

import os

# Must be set before backend.app.config is imported
os.environ["DB_DSN"] = "sqlite://"
os.environ["AUTH_JWT_SECRET"] = "test-secret"
os.environ.pop("AUTH_JWT_AUDIENCE", None)

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from backend.app.db.base import Base
from backend.app.db.init_db import seed_reference_data
from backend.app.db.session import SessionLocal, engine
from backend.app.main import app
from backend.app.models import UserRole

TEST_USER_ID = "11111111-1111-1111-1111-111111111111"
ADMIN_USER_ID = "22222222-2222-2222-2222-222222222222"


@pytest.fixture(autouse=True)
def fresh_schema():
    """Empty schema with seeded verticals and grant types for every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        seed_reference_data(db)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_token(user_id: str, secret: str = "test-secret") -> str:
    return jwt.encode({"sub": user_id}, secret, algorithm="HS256")


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token(TEST_USER_ID)}"}


@pytest.fixture
def admin_headers(db):
    db.add(UserRole(user_id=ADMIN_USER_ID, role="admin"))
    db.commit()
    return {"Authorization": f"Bearer {make_token(ADMIN_USER_ID)}"}
