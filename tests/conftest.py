import os

# Must be set before the application modules read their settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def client(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def register_and_login(client, email, password="s3cret-pass"):
    response = client.post("/auth/register", json={"email": email, "password": password})
    assert response.status_code == 201, response.text
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def auth_headers(client):
    return register_and_login(client, "alice@example.com")


@pytest.fixture
def other_headers(client):
    return register_and_login(client, "bob@example.com")


@pytest.fixture
def create_expense(client, auth_headers):
    def _create(headers=None, **overrides):
        payload = {
            "description": "Team lunch",
            "base_amount": 100.0,
            "tax_rate": 0.18,
            "category": "Food",
        }
        payload.update(overrides)
        response = client.post("/expenses", json=payload, headers=headers or auth_headers)
        assert response.status_code == 201, response.text
        return response.json()["expense"]

    return _create


@pytest.fixture
def login_as(client):
    def _login(email, password="s3cret-pass"):
        return register_and_login(client, email, password)

    return _login
