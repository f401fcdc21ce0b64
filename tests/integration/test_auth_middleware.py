# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for bearer authentication and the role dependencies.

A small stub application is used so no database is involved.
"""

from datetime import timedelta
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from pydantic import SecretStr

from src.api.dependencies import AdminUser, AuthenticatedUser
from src.api.middleware import auth as auth_module
from src.api.middleware.auth import AuthMiddleware, CurrentUser, bearer_token, get_current_user
from src.domains.auth.jwt import JWTManager


@pytest.fixture
def jwt_settings() -> MagicMock:
    """JWT settings shared by the stub app and the test tokens."""
    settings = MagicMock()
    settings.secret_key = SecretStr("test-secret")
    settings.algorithm = "HS256"
    settings.access_token_expire_minutes = 30
    return settings


@pytest.fixture
def jwt_manager(jwt_settings: MagicMock) -> JWTManager:
    return JWTManager(jwt_settings)


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, jwt_settings: MagicMock) -> TestClient:
    """Stub app whose middleware verifies tokens signed with jwt_settings."""
    app_settings = MagicMock()
    app_settings.jwt = jwt_settings
    monkeypatch.setattr(auth_module, "get_settings", lambda: app_settings)

    app = FastAPI()
    app.add_middleware(AuthMiddleware)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.get("/api/v1/whoami")
    async def whoami(request: Request) -> dict:
        user = get_current_user(request)
        return {"user_id": user.id if user else None}

    @app.get("/api/v1/me")
    async def me(current_user: AuthenticatedUser) -> dict:
        return {"user_id": current_user.id}

    @app.get("/api/v1/admin")
    async def admin(current_user: AdminUser) -> dict:
        return {"user_id": current_user.id}

    return TestClient(app)


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestAuthMiddleware:
    """Tests for how AuthMiddleware resolves the caller."""

    def test_public_path(self, client: TestClient) -> None:
        """Test that public paths are served without a token."""
        assert client.get("/health").status_code == 200

    def test_valid_token(self, client: TestClient, jwt_manager: JWTManager) -> None:
        """Test that a valid token identifies the caller."""
        user_id = str(uuid4())
        token = jwt_manager.create_access_token(user_id=user_id, role="admin")

        response = client.get("/api/v1/whoami", headers=_bearer(token))

        assert response.status_code == 200
        assert response.json()["user_id"] == user_id

    @pytest.mark.parametrize(
        "headers",
        [{}, {"Authorization": "Bearer invalid-token"}, {"Authorization": "Bearer"}],
    )
    def test_anonymous(self, client: TestClient, headers: dict) -> None:
        """Test that missing or unreadable tokens leave the caller anonymous."""
        response = client.get("/api/v1/whoami", headers=headers)

        assert response.status_code == 200
        assert response.json()["user_id"] is None

    def test_expired_token(self, client: TestClient, jwt_manager: JWTManager) -> None:
        """Test that an expired token is treated as anonymous."""
        token = jwt_manager.create_access_token(
            user_id=str(uuid4()), expires_delta=timedelta(minutes=-1)
        )

        assert client.get("/api/v1/whoami", headers=_bearer(token)).json()["user_id"] is None

    def test_other_scheme(self, client: TestClient, jwt_manager: JWTManager) -> None:
        """Test that only the Bearer scheme is read."""
        token = jwt_manager.create_access_token(user_id=str(uuid4()))
        headers = {"Authorization": f"Token {token}"}

        assert client.get("/api/v1/whoami", headers=headers).json()["user_id"] is None


class TestRoleDependencies:
    """Tests for require_auth and require_admin."""

    def test_anonymous_gets_challenge(self, client: TestClient) -> None:
        """Test the 401 with a Bearer challenge."""
        response = client.get("/api/v1/me")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_learner_is_not_admin(self, client: TestClient, jwt_manager: JWTManager) -> None:
        """Test that learners pass require_auth but not require_admin."""
        token = jwt_manager.create_access_token(user_id=str(uuid4()), role="learner")

        assert client.get("/api/v1/me", headers=_bearer(token)).status_code == 200
        assert client.get("/api/v1/admin", headers=_bearer(token)).status_code == 403

    def test_admin_from_role_codes(self, client: TestClient, jwt_manager: JWTManager) -> None:
        """Test that ``admin`` among the extra role codes is enough."""
        user_id = str(uuid4())
        token = jwt_manager.create_access_token(user_id=user_id, roles=["admin"])

        response = client.get("/api/v1/admin", headers=_bearer(token))

        assert response.status_code == 200
        assert response.json()["user_id"] == user_id


class TestCurrentUser:
    """Tests for CurrentUser and bearer_token."""

    def test_roles(self, jwt_manager: JWTManager) -> None:
        """Test has_role over the primary role and the extra codes."""
        token = jwt_manager.create_access_token(user_id="u1", role="learner", roles=["reader"])
        user = CurrentUser(jwt_manager.decode_token(token))

        assert user.has_role("learner")
        assert user.has_role("reader")
        assert not user.has_role("admin")
        assert not user.is_admin

    def test_admin(self, jwt_manager: JWTManager) -> None:
        """Test is_admin for the admin role."""
        token = jwt_manager.create_access_token(user_id="u1", role="admin", email="a@lumen.test")
        user = CurrentUser(jwt_manager.decode_token(token))

        assert user.is_admin
        assert user.email == "a@lumen.test"

    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            ("Bearer abc.def", "abc.def"),
            ("bearer abc.def", "abc.def"),
            ("Bearer  abc.def ", "abc.def"),
            ("Bearer a b", None),
            ("Basic abc", None),
            ("Bearer", None),
            (None, None),
        ],
    )
    def test_bearer_token(self, header: str | None, expected: str | None) -> None:
        """Test extraction of bearer credentials."""
        assert bearer_token(header) == expected
