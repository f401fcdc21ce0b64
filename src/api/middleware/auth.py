# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bearer token authentication for the import API.

Every request passes through AuthMiddleware. A valid access token puts a
CurrentUser on ``request.state.user``; anything else leaves it as None and
the route dependencies decide whether that is acceptable.
"""

import logging
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.core.config import get_settings
from src.domains.auth.jwt import InvalidTokenError, JWTManager, TokenPayload
from src.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)

PUBLIC_PATHS = frozenset({
    "/",
    "/health",
    "/health/ready",
    "/health/live",
    "/docs",
    "/redoc",
    "/openapi.json",
})

ADMIN_ROLE = "admin"


class CurrentUser:
    """Identity of the caller as carried by the access token."""

    def __init__(self, payload: TokenPayload) -> None:
        self.id = payload.sub
        self.email = payload.email
        self.role = payload.role
        self.roles = list(payload.roles)

    def has_role(self, role: str) -> bool:
        """True when role is the primary role or one of the extra codes."""
        return role == self.role or role in self.roles

    @property
    def is_admin(self) -> bool:
        return self.has_role(ADMIN_ROLE)

    def __repr__(self) -> str:
        return f"CurrentUser(id={self.id!r}, role={self.role!r})"


def bearer_token(authorization: str | None) -> str | None:
    """Return the credentials of a ``Bearer <token>`` header value."""
    if not authorization:
        return None
    scheme, _, credentials = authorization.partition(" ")
    credentials = credentials.strip()
    if scheme.lower() != "bearer" or not credentials or " " in credentials:
        return None
    return credentials


class AuthMiddleware(BaseHTTPMiddleware):
    """Resolve the caller from the Authorization header.

    Public paths are passed through untouched. The caller id is bound to the
    structured logging context until the response is produced.
    """

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)
        self._tokens = JWTManager(get_settings().jwt)

    def _resolve(self, request: Request) -> CurrentUser | None:
        token = bearer_token(request.headers.get("Authorization"))
        if token is None:
            return None
        try:
            payload = self._tokens.decode_token(token, expected_type="access")
        except InvalidTokenError as e:
            # TokenExpiredError is a subclass
            logger.debug("Rejected bearer token on %s: %s", request.url.path, e)
            return None
        return CurrentUser(payload)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        request.state.user = None
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        user = self._resolve(request)
        if user is not None:
            request.state.user = user
            bind_context(user_id=user.id)

        try:
            return await call_next(request)
        finally:
            clear_context()


def get_current_user(request: Request) -> CurrentUser | None:
    """Caller attached by AuthMiddleware, or None for anonymous requests."""
    return getattr(request.state, "user", None)
