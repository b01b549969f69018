"""
Test the authentication and profile endpoints
"""

import asyncio
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from common.config import get_settings
from common.auth import (
    UserRole,
    UserService,
    SignupRequest,
    create_token_pair,
    decode_access_token,
    decode_refresh_token
)
from common.auth.passwords import hash_password, verify_password
from common.exceptions import AuthenticationError, TokenExpiredError

settings = get_settings()

SIGNUP = {"email": "Sam@Example.com", "password": "calm-waters-1", "name": "Sam"}


def expired_access_token(user_id="665f1c2e8a1b2c3d4e5f6a7b"):
    past = datetime.now(timezone.utc) - timedelta(minutes=5)
    payload = {"id": user_id, "role": "user", "iat": past - timedelta(minutes=15), "exp": past}
    return jwt.encode(payload, settings.JWT_ACCESS_SECRET, algorithm=settings.JWT_ALGORITHM)


class TestTokens:
    def test_pair_round_trip(self):
        pair = create_token_pair("u1", "admin")

        assert decode_access_token(pair["accessToken"])["role"] == "admin"
        assert decode_refresh_token(pair["refreshToken"])["id"] == "u1"

    def test_access_token_is_not_a_refresh_token(self):
        pair = create_token_pair("u1", "user")

        with pytest.raises(AuthenticationError):
            decode_refresh_token(pair["accessToken"])

    def test_expired_access_token(self):
        with pytest.raises(TokenExpiredError):
            decode_access_token(expired_access_token())


class TestSignupAndLogin:
    def test_signup_returns_credentials(self, client):
        response = client.post("/auth/signup", json=SIGNUP)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["accessToken"] and data["refreshToken"]
        assert data["user"]["email"] == "sam@example.com"
        assert data["user"]["role"] == "user"

    def test_signup_validation_errors(self, client):
        response = client.post("/auth/signup", json={"email": "not-an-email", "password": "short"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["errors"] == [
            "Invalid email format",
            "Password must be at least 8 characters",
            "Name is required",
        ]

    def test_duplicate_signup(self, client):
        client.post("/auth/signup", json=SIGNUP)
        response = client.post("/auth/signup", json=SIGNUP)

        assert response.status_code == 409
        assert response.json()["error"] == "An account with this email already exists"

    def test_login(self, client):
        client.post("/auth/signup", json=SIGNUP)
        response = client.post("/auth/login", json={"email": "sam@example.com", "password": SIGNUP["password"]})

        assert response.status_code == 200
        assert response.json()["data"]["user"]["name"] == "Sam"

    def test_login_wrong_password(self, client):
        client.post("/auth/signup", json=SIGNUP)
        response = client.post("/auth/login", json={"email": SIGNUP["email"], "password": "nope-nope"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid credentials"


class TestTokenLifecycle:
    def test_refresh_issues_new_access_token(self, client):
        tokens = client.post("/auth/signup", json=SIGNUP).json()["data"]

        response = client.post("/auth/refresh", json={"refreshToken": tokens["refreshToken"]})

        assert response.status_code == 200
        access = response.json()["data"]["accessToken"]
        me = client.get("/auth/me", headers={"Authorization": f"Bearer {access}"})
        assert me.json()["data"]["email"] == "sam@example.com"

    def test_refresh_rejects_garbage(self, client):
        response = client.post("/auth/refresh", json={"refreshToken": "garbage"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid refresh token"

    def test_expired_token_reports_code(self, client):
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {expired_access_token()}"})

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Token expired", "code": "TOKEN_EXPIRED"}

    def test_missing_token(self, client):
        response = client.get("/auth/me")

        assert response.status_code == 401
        assert response.json()["error"] == "No token provided"

    def test_me_never_returns_password_hash(self, client, make_user):
        _, headers = make_user()

        data = client.get("/auth/me", headers=headers).json()["data"]

        assert data["email"] == "member@example.com"
        assert "passwordHash" not in data


class TestAdminElevate:
    def test_wrong_password(self, client, make_user, monkeypatch):
        monkeypatch.setattr(settings, "ADMIN_PASSWORD", "open-sesame")
        _, headers = make_user()

        response = client.post("/auth/admin-elevate", json={"password": "guess"}, headers=headers)

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid admin password"

    def test_unset_password_always_rejects(self, client, make_user, monkeypatch):
        monkeypatch.setattr(settings, "ADMIN_PASSWORD", None)
        _, headers = make_user()

        response = client.post("/auth/admin-elevate", json={"password": ""}, headers=headers)

        assert response.status_code == 401

    def test_grants_admin_role(self, client, make_user, monkeypatch):
        monkeypatch.setattr(settings, "ADMIN_PASSWORD", "open-sesame")
        _, headers = make_user()

        response = client.post("/auth/admin-elevate", json={"password": "open-sesame"}, headers=headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["role"] == UserRole.ADMIN.value
        assert decode_access_token(data["accessToken"])["role"] == "admin"

    def test_attempts_are_rate_limited(self, client, make_user, monkeypatch):
        monkeypatch.setattr(settings, "ADMIN_PASSWORD", "open-sesame")
        _, headers = make_user()

        for _ in range(5):
            response = client.post("/auth/admin-elevate", json={"password": "guess"}, headers=headers)
            assert response.status_code == 401

        response = client.post("/auth/admin-elevate", json={"password": "open-sesame"}, headers=headers)

        assert response.status_code == 429
        assert response.json() == {"error": "Too many admin elevation attempts. Please try again after an hour."}


class TestProfile:
    def test_update_profile_only_touches_sent_fields(self, client, make_user):
        _, headers = make_user(university="Old U")

        response = client.patch("/users/me", json={"firstName": "Sam"}, headers=headers)

        data = response.json()["data"]
        assert data["firstName"] == "Sam"
        assert data["university"] == "Old U"

    def test_update_avatar(self, client, make_user):
        _, headers = make_user()

        response = client.put("/users/me/avatar", json={"avatarUrl": "https://cdn.example.org/a.png"}, headers=headers)

        assert response.json()["data"]["avatarUrl"] == "https://cdn.example.org/a.png"

    def test_change_password(self, client, make_user):
        _, headers = make_user(email="pw@example.com", password="first-password")

        wrong = client.post(
            "/users/me/password",
            json={"currentPassword": "not-it", "newPassword": "second-password"},
            headers=headers
        )
        assert wrong.status_code == 401
        assert wrong.json()["error"] == "Current password is incorrect"

        ok = client.post(
            "/users/me/password",
            json={"currentPassword": "first-password", "newPassword": "second-password"},
            headers=headers
        )
        assert ok.status_code == 200

        login = client.post("/auth/login", json={"email": "pw@example.com", "password": "second-password"})
        assert login.status_code == 200

    def test_change_password_requires_both_fields(self, client, make_user):
        _, headers = make_user()

        response = client.post("/users/me/password", json={"newPassword": "x"}, headers=headers)

        assert response.status_code == 400
        assert response.json()["error"] == "Current password and new password are required"


@pytest.mark.asyncio
async def test_set_role_by_email(db):
    service = UserService(db)
    await service.signup(SignupRequest(**SIGNUP))

    user = await service.set_role("SAM@example.com", UserRole.MODERATOR)

    assert user["role"] == "moderator"
    assert "passwordHash" not in user


@pytest.mark.asyncio
async def test_password_hashing_keeps_event_loop_responsive():
    loop = asyncio.get_running_loop()
    gaps = []
    running = True

    async def ticker():
        last = loop.time()
        while running:
            await asyncio.sleep(0.005)
            now = loop.time()
            gaps.append(now - last)
            last = now

    task = asyncio.create_task(ticker())
    hashed = await hash_password("calm-waters-1")
    assert await verify_password("calm-waters-1", hashed)
    assert not await verify_password("wrong", hashed)
    running = False
    await task

    assert max(gaps, default=0) < 0.1
