from datetime import datetime, timedelta, timezone

import jwt
import pytest

from auth import create_access_token, hash_password, verify_password, verify_token
from config import get_settings
from database import User


class TestRegister:
    def test_register_returns_id_and_email(self, client):
        response = client.post(
            "/auth/register", json={"email": "new@example.com", "password": "pw"}
        )
        assert response.status_code == 201
        body = response.json()
        assert body["email"] == "new@example.com"
        assert isinstance(body["id"], int)
        assert "password" not in body
        assert "password_hash" not in body

    def test_register_same_email_twice(self, client):
        payload = {"email": "dup@example.com", "password": "pw"}
        assert client.post("/auth/register", json=payload).status_code == 201

        response = client.post("/auth/register", json=payload)
        assert response.status_code == 400
        assert "already exists" in response.json()["detail"]

    def test_email_is_case_sensitive(self, client):
        assert client.post(
            "/auth/register", json={"email": "Case@example.com", "password": "pw"}
        ).status_code == 201
        assert client.post(
            "/auth/register", json={"email": "case@example.com", "password": "pw"}
        ).status_code == 201

    def test_duplicate_email_losing_insert_race(self, client, monkeypatch):
        payload = {"email": "race@example.com", "password": "pw"}
        assert client.post("/auth/register", json=payload).status_code == 201

        # Both requests passed the lookup; the unique constraint decides
        monkeypatch.setattr("auth.find_user_by_email", lambda db, email: None)
        response = client.post("/auth/register", json=payload)
        assert response.status_code == 400
        assert response.json() == {"detail": "User with this email already exists"}

    @pytest.mark.parametrize(
        "payload",
        [
            {"email": "x@example.com"},
            {"password": "pw"},
            {"email": "", "password": "pw"},
            {"email": "x@example.com", "password": ""},
        ],
    )
    def test_register_requires_email_and_password(self, client, payload):
        response = client.post("/auth/register", json=payload)
        assert response.status_code == 400


class TestLogin:
    def test_login_issues_token_with_user_claims(self, client):
        client.post("/auth/register", json={"email": "a@example.com", "password": "pw"})
        response = client.post(
            "/auth/login", json={"email": "a@example.com", "password": "pw"}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["user"]["email"] == "a@example.com"

        settings = get_settings()
        payload = jwt.decode(
            body["token"], settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
        assert payload["userId"] == body["user"]["id"]
        assert payload["email"] == "a@example.com"
        lifetime = payload["exp"] - datetime.now(timezone.utc).timestamp()
        assert timedelta(hours=23).total_seconds() < lifetime <= timedelta(days=1).total_seconds()

    def test_wrong_password_and_unknown_email_look_the_same(self, client):
        client.post("/auth/register", json={"email": "a@example.com", "password": "pw"})

        wrong_password = client.post(
            "/auth/login", json={"email": "a@example.com", "password": "nope"}
        )
        unknown_email = client.post(
            "/auth/login", json={"email": "ghost@example.com", "password": "pw"}
        )
        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json() == {
            "detail": "Invalid credentials"
        }

    def test_login_requires_both_fields(self, client):
        response = client.post("/auth/login", json={"email": "a@example.com"})
        assert response.status_code == 400


class TestPasswords:
    def test_hash_round_trip(self):
        hashed = hash_password("correct horse")
        assert hashed != "correct horse"
        assert verify_password("correct horse", hashed)
        assert not verify_password("battery staple", hashed)

    def test_overlong_password_never_verifies(self):
        hashed = hash_password("short")
        assert not verify_password("x" * 100, hashed)


class TestVerifyToken:
    def _token(self, user_id=7):
        return create_access_token(User(id=user_id, email="t@example.com"))

    def test_valid_bearer_header(self):
        assert verify_token(f"Bearer {self._token(user_id=42)}") == 42

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer ", "Token abc", "abc"])
    def test_missing_or_malformed_header(self, header):
        assert verify_token(header) is None

    def test_bad_signature(self):
        token = jwt.encode(
            {
                "userId": 1,
                "email": "t@example.com",
                "exp": datetime.now(timezone.utc) + timedelta(days=1),
            },
            "some-other-secret-that-is-long-enough-for-hs256",
            algorithm="HS256",
        )
        assert verify_token(f"Bearer {token}") is None

    def test_expired_token(self):
        settings = get_settings()
        token = jwt.encode(
            {
                "userId": 1,
                "email": "t@example.com",
                "exp": datetime.now(timezone.utc) - timedelta(minutes=1),
            },
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        assert verify_token(f"Bearer {token}") is None

    def test_token_without_expiry_is_rejected(self):
        settings = get_settings()
        token = jwt.encode(
            {"userId": 1}, settings.jwt_secret, algorithm=settings.jwt_algorithm
        )
        assert verify_token(f"Bearer {token}") is None


class TestProtectedRoutes:
    def test_expenses_require_token(self, client):
        assert client.get("/expenses").status_code == 401
        assert client.post("/expenses", json={}).status_code == 401
        assert client.get("/expenses/1").status_code == 401
        assert client.put("/expenses/1", json={"description": "x"}).status_code == 401
        assert client.delete("/expenses/1").status_code == 401

    def test_garbage_token_is_rejected(self, client):
        response = client.get("/expenses", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json() == {"detail": "Unauthorized"}

    def test_token_for_unknown_user_is_rejected(self, client):
        token = create_access_token(User(id=999, email="ghost@example.com"))
        response = client.get("/expenses", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
