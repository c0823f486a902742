"""Tests for the /api/auth endpoints."""

from datetime import UTC, datetime, timedelta

import jwt

from app.config import JWT_ALGORITHM, JWT_SECRET


class TestRegister:
    def test_register_success(self, client):
        resp = client.post(
            "/api/auth/register",
            json={
                "name": "Pat Player",
                "email": "pat@example.com",
                "password": "secret123",
                "phone": "+919800000000",
            },
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["message"] == "User registered successfully"
        assert data["user"]["email"] == "pat@example.com"
        assert data["user"]["role"] == "user"
        assert "password" not in data["user"]
        assert "password_hash" not in data["user"]

        payload = jwt.decode(data["token"], JWT_SECRET, algorithms=[JWT_ALGORITHM])
        assert payload["sub"] == data["user"]["id"]
        assert payload["role"] == "user"

    def test_duplicate_email(self, client, register):
        register("user")
        resp = client.post(
            "/api/auth/register",
            json={"name": "Again", "email": "user1@example.com", "password": "secret123"},
        )
        assert resp.status_code == 409

    def test_admin_cannot_self_register(self, client):
        resp = client.post(
            "/api/auth/register",
            json={"name": "Eve", "email": "eve@example.com", "password": "secret123", "role": "admin"},
        )
        assert resp.status_code == 422

    def test_short_password(self, client):
        resp = client.post(
            "/api/auth/register",
            json={"name": "Pat", "email": "pat@example.com", "password": "123"},
        )
        assert resp.status_code == 422

    def test_invalid_email(self, client):
        resp = client.post(
            "/api/auth/register",
            json={"name": "Pat", "email": "not-an-email", "password": "secret123"},
        )
        assert resp.status_code == 422


class TestLogin:
    def test_login_success(self, client, register):
        register("owner")
        resp = client.post(
            "/api/auth/login",
            json={"email": "owner1@example.com", "password": "secret123"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "Login successful"
        assert data["user"]["role"] == "owner"
        assert data["token"]

    def test_wrong_password(self, client, register):
        register("user")
        resp = client.post(
            "/api/auth/login",
            json={"email": "user1@example.com", "password": "wrong-password"},
        )
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid email or password"

    def test_unknown_email(self, client):
        resp = client.post(
            "/api/auth/login",
            json={"email": "ghost@example.com", "password": "secret123"},
        )
        assert resp.status_code == 401


class TestMe:
    def test_me_with_token(self, client, player):
        resp = client.get("/api/auth/me", headers=player["headers"])
        assert resp.status_code == 200
        assert resp.json()["id"] == player["user"]["id"]

    def test_me_without_token(self, client):
        resp = client.get("/api/auth/me")
        assert resp.status_code == 401

    def test_me_with_garbage_token(self, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_me_with_wrong_scheme(self, client, player):
        resp = client.get("/api/auth/me", headers={"Authorization": f"Basic {player['token']}"})
        assert resp.status_code == 401

    def test_me_with_expired_token(self, client, player):
        past = datetime.now(UTC) - timedelta(days=8)
        token = jwt.encode(
            {"sub": player["user"]["id"], "iat": past, "exp": past + timedelta(days=7)},
            JWT_SECRET,
            algorithm=JWT_ALGORITHM,
        )
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert "expired" in resp.json()["detail"].lower()
