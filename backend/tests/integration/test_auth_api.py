"""Integration tests for the authentication endpoints."""

import pytest
from httpx import AsyncClient

from infrastructure.database.models import User

pytestmark = pytest.mark.asyncio


async def _signup(async_client: AsyncClient, email="reader@example.com", password="secret123"):
    return await async_client.post(
        "/api/v1/auth/signup",
        json={"email": email, "password": password, "name": "Reader"},
    )


def _last_otp(email_service) -> str:
    return email_service.of_kind("otp")[-1]["otp_code"]


class TestSignupFlow:
    async def test_signup_verify_and_open_session(self, async_client: AsyncClient, email_service):
        response = await _signup(async_client)
        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "reader@example.com"
        assert data["email_verified"] is False
        assert "password_hash" not in data

        response = await async_client.post(
            "/api/v1/auth/verify-otp",
            json={"email": "reader@example.com", "otp": _last_otp(email_service)},
        )
        assert response.status_code == 200
        token = response.json()["verification_token"]

        response = await async_client.post(
            "/api/v1/auth/session",
            json={"email": "reader@example.com", "verification_token": token},
        )
        assert response.status_code == 200
        tokens = response.json()
        assert tokens["token_type"] == "bearer"
        assert "access_token" in response.cookies

        response = await async_client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {tokens['access_token']}"},
        )
        assert response.status_code == 200
        assert response.json()["email_verified"] is True

    async def test_verification_token_single_use(self, async_client: AsyncClient, email_service):
        await _signup(async_client)
        response = await async_client.post(
            "/api/v1/auth/verify-otp",
            json={"email": "reader@example.com", "otp": _last_otp(email_service)},
        )
        body = {"email": "reader@example.com", "verification_token": response.json()["verification_token"]}

        assert (await async_client.post("/api/v1/auth/session", json=body)).status_code == 200
        response = await async_client.post("/api/v1/auth/session", json=body)
        assert response.status_code == 404

    async def test_auto_login_returns_password_once(self, async_client: AsyncClient, email_service):
        await _signup(async_client)
        await async_client.post(
            "/api/v1/auth/verify-otp",
            json={"email": "reader@example.com", "otp": _last_otp(email_service)},
        )

        response = await async_client.post("/api/v1/auth/auto-login", json={"email": "reader@example.com"})
        assert response.status_code == 200
        assert response.json() == {"success": True, "temp_password": "secret123"}

        response = await async_client.post("/api/v1/auth/auto-login", json={"email": "reader@example.com"})
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    async def test_auto_login_before_verification(self, async_client: AsyncClient):
        await _signup(async_client)
        response = await async_client.post("/api/v1/auth/auto-login", json={"email": "reader@example.com"})
        assert response.status_code == 403

    async def test_duplicate_signup(self, async_client: AsyncClient, test_user: User):
        response = await _signup(async_client, email=test_user.email)
        assert response.status_code == 409
        assert response.json()["code"] == "conflict"

    async def test_short_password_rejected(self, async_client: AsyncClient):
        response = await _signup(async_client, password="12345")
        assert response.status_code == 422

    async def test_wrong_otp(self, async_client: AsyncClient, email_service):
        await _signup(async_client)
        wrong = "000000" if _last_otp(email_service) != "000000" else "111111"

        response = await async_client.post(
            "/api/v1/auth/verify-otp", json={"email": "reader@example.com", "otp": wrong}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_otp"

    async def test_malformed_otp(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/v1/auth/verify-otp", json={"email": "reader@example.com", "otp": "12ab56"}
        )
        assert response.status_code == 422

    async def test_resend_otp(self, async_client: AsyncClient, email_service):
        await _signup(async_client)

        response = await async_client.post("/api/v1/auth/resend-otp", json={"email": "reader@example.com"})

        assert response.status_code == 200
        assert len(email_service.of_kind("otp")) == 2

    async def test_verify_already_verified(self, async_client: AsyncClient, test_user: User):
        response = await async_client.post(
            "/api/v1/auth/verify-otp", json={"email": test_user.email, "otp": "123456"}
        )
        assert response.status_code == 409
        assert response.json()["code"] == "already_verified"


class TestLogin:
    async def test_login_success(self, async_client: AsyncClient, test_user: User):
        response = await async_client.post(
            "/api/v1/auth/login",
            json={"email": test_user.email, "password": "testpassword123"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["expires_in"] > 0

    async def test_login_wrong_password(self, async_client: AsyncClient, test_user: User):
        response = await async_client.post(
            "/api/v1/auth/login",
            json={"email": test_user.email, "password": "wrongpassword"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    async def test_login_banned(self, async_client: AsyncClient, banned_user: User):
        response = await async_client.post(
            "/api/v1/auth/login",
            json={"email": banned_user.email, "password": "testpassword123"},
        )
        assert response.status_code == 403

    async def test_login_unverified(self, async_client: AsyncClient):
        await _signup(async_client)
        response = await async_client.post(
            "/api/v1/auth/login",
            json={"email": "reader@example.com", "password": "secret123"},
        )
        assert response.status_code == 403

    async def test_refresh(self, async_client: AsyncClient, test_user: User):
        response = await async_client.post(
            "/api/v1/auth/login",
            json={"email": test_user.email, "password": "testpassword123"},
        )
        refresh_token = response.json()["refresh_token"]

        response = await async_client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert response.status_code == 200

        response = await async_client.post("/api/v1/auth/refresh", json={"refresh_token": "garbage"})
        assert response.status_code == 401


class TestMe:
    async def test_requires_token(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/auth/me")
        assert response.status_code == 401

    async def test_invalid_token(self, async_client: AsyncClient):
        response = await async_client.get(
            "/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401

    async def test_banned_user_rejected(self, async_client: AsyncClient, banned_user: User):
        from conftest import bearer

        response = await async_client.get("/api/v1/auth/me", headers=bearer(banned_user))
        assert response.status_code == 403

    async def test_logout_clears_cookies(self, async_client: AsyncClient):
        response = await async_client.post("/api/v1/auth/logout")
        assert response.status_code == 200
        assert "access_token" in response.headers.get("set-cookie", "")
