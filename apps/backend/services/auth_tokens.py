"""
Optima AI - Tokens & Password Hashing
=====================================
PyJWT-signed tokens for password reset and API access, bcrypt password hashes.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import bcrypt
import jwt

from config import Settings, get_settings
from exceptions import InvalidTokenError, ValidationError


class TokenService:
    """
    Signs and verifies HS256 JWTs.

    Reset tokens carry ``{"id": <user id>, "purpose": "reset"}``; access tokens
    carry ``{"id", "email", "type", "purpose": "access"}``.

    Example:
        ```python
        tokens = TokenService(secret_key="s3cret")
        token = tokens.generate_token({"id": user.id}, expires_in=3600)
        payload = tokens.verify_token(token)
        ```
    """

    ALGORITHM = "HS256"

    def __init__(self, secret_key: Optional[str] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._secret_key = secret_key or self.settings.jwt_secret
        if not self._secret_key:
            raise ValueError("JWT secret key cannot be empty")

    def generate_token(self, payload: dict[str, Any], expires_in: int) -> str:
        """
        Sign ``payload`` with an ``exp`` claim ``expires_in`` seconds from now.

        Args:
            payload: Claims to embed
            expires_in: Lifetime in seconds

        Returns:
            Encoded JWT string
        """
        now = datetime.now(tz=timezone.utc)
        claims = {
            **payload,
            "iat": now,
            "exp": now + timedelta(seconds=expires_in),
        }
        return jwt.encode(claims, self._secret_key, algorithm=self.ALGORITHM)

    def verify_token(self, token: str) -> dict[str, Any]:
        """
        Decode and verify a token.

        Raises:
            InvalidTokenError: Signature mismatch, expiry or malformed token
        """
        try:
            return jwt.decode(token, self._secret_key, algorithms=[self.ALGORITHM])
        except jwt.ExpiredSignatureError as e:
            raise InvalidTokenError("Invalid or expired token", original_error=e) from e
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError("Invalid or expired token", original_error=e) from e

    def create_reset_token(self, user_id: str) -> str:
        return self.generate_token(
            {"id": user_id, "purpose": "reset"},
            expires_in=self.settings.reset_token_ttl_seconds,
        )

    def verify_reset_token(self, token: str) -> str:
        """
        Verify a reset token and return the user id it was issued for.

        Raises:
            InvalidTokenError: Token invalid, expired, or without a string ``id``
        """
        payload = self.verify_token(token)
        user_id = payload.get("id")
        if not isinstance(user_id, str) or payload.get("purpose", "reset") != "reset":
            raise InvalidTokenError()
        return user_id

    def create_access_token(self, user_id: str, email: str, user_type: str = "regular") -> str:
        return self.generate_token(
            {"id": user_id, "email": email, "type": user_type, "purpose": "access"},
            expires_in=self.settings.access_token_ttl_seconds,
        )

    def verify_access_token(self, token: str) -> dict[str, Any]:
        payload = self.verify_token(token)
        if payload.get("purpose") != "access" or not isinstance(payload.get("id"), str):
            raise InvalidTokenError("Invalid access token")
        return payload


class PasswordHasher:
    """bcrypt hashing with a configurable work factor."""

    # bcrypt only looks at the first 72 bytes
    MAX_BYTES = 72

    def __init__(self, rounds: Optional[int] = None, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self._rounds = rounds or settings.bcrypt_rounds

    def hash(self, password: str) -> str:
        self.validate(password)
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def validate(self, password: str) -> None:
        if not password:
            raise ValidationError("Password is required", field="newPassword")
        if len(password.encode("utf-8")) > self.MAX_BYTES:
            raise ValidationError(
                f"Password cannot exceed {self.MAX_BYTES} bytes",
                field="newPassword",
            )
