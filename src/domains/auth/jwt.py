# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Access token handling.

Tokens are issued by the hosted auth provider and signed with a shared
secret. JWTManager checks them with python-jose and can mint equivalent
tokens for development and tests.

Example:
    >>> from src.core.config import get_settings
    >>> tokens = JWTManager(get_settings().jwt)
    >>> token = tokens.create_access_token(user_id="user-123", role="admin")
    >>> tokens.decode_token(token, expected_type="access").role
    'admin'
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Literal
from uuid import UUID

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel, Field, ValidationError

from src.core.config.settings import JWTSettings

logger = logging.getLogger(__name__)

TokenType = Literal["access", "refresh"]


class TokenPayload(BaseModel):
    """Claims read from a verified token.

    Provider tokens may omit ``type``; those are treated as access tokens.
    """

    sub: str
    type: TokenType = "access"
    email: str | None = None
    role: str | None = None
    roles: list[str] = Field(default_factory=list)
    exp: int
    iat: int | None = None
    jti: str | None = None


class InvalidTokenError(Exception):
    """The token cannot be trusted."""


class TokenExpiredError(InvalidTokenError):
    """The token signature is valid but its lifetime is over."""


class JWTManager:
    """Signs and verifies tokens with the configured secret."""

    def __init__(self, settings: JWTSettings) -> None:
        self._settings = settings

    @property
    def _key(self) -> str:
        return self._settings.secret_key.get_secret_value()

    def create_access_token(
        self,
        user_id: str | UUID,
        email: str | None = None,
        role: str | None = None,
        roles: list[str] | None = None,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Mint an access token for a user.

        Args:
            user_id: Subject of the token.
            email: Account email claim.
            role: Primary role claim.
            roles: Extra role codes.
            expires_delta: Lifetime; defaults to the configured expiry.

        Returns:
            The encoded token.
        """
        issued = datetime.now(timezone.utc)
        lifetime = expires_delta or timedelta(minutes=self._settings.access_token_expire_minutes)
        claims: dict[str, Any] = {
            "sub": str(user_id),
            "type": "access",
            "email": email,
            "role": role,
            "roles": list(roles or ()),
            "iat": int(issued.timestamp()),
            "exp": int((issued + lifetime).timestamp()),
            "jti": secrets.token_urlsafe(16),
        }
        return jwt.encode(claims, self._key, algorithm=self._settings.algorithm)

    def decode_token(self, token: str, expected_type: TokenType | None = None) -> TokenPayload:
        """Verify a token and return its claims.

        Raises:
            TokenExpiredError: The token is past its ``exp``.
            InvalidTokenError: Bad signature, malformed claims or wrong type.
        """
        try:
            claims = jwt.decode(
                token,
                self._key,
                algorithms=[self._settings.algorithm],
                options={"verify_aud": False},
            )
        except ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except JWTError as e:
            logger.warning("Token verification failed: %s", e)
            raise InvalidTokenError(f"Invalid token: {e}") from e

        claims.setdefault("type", "access")
        if claims.get("roles") is None:
            claims["roles"] = []
        if expected_type is not None and claims["type"] != expected_type:
            raise InvalidTokenError(f"Expected {expected_type} token, got {claims['type']}")

        try:
            return TokenPayload.model_validate(claims)
        except ValidationError as e:
            raise InvalidTokenError(f"Invalid token claims: {e.error_count()} problem(s)") from e
