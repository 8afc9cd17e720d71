"""
security helpers:
- Argon2 hashing via argon2-cffi (passwords, refresh tokens, reset validators)
- JWT signing/verification via PyJWT
- JTI and random token generation
"""
from __future__ import annotations

import secrets
import uuid
from datetime import timedelta
from typing import Any, Dict

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from models.base_model import utcnow


class TokenError(Exception):
    """Base class for token codec failures."""


class TokenExpired(TokenError):
    pass


class InvalidToken(TokenError):
    pass


class Hasher:
    """One-way hash with constant-time verification (argon2id)."""

    def __init__(self, time_cost: int | None = None, memory_cost: int | None = None):
        kwargs = {}
        if time_cost:
            kwargs["time_cost"] = time_cost
        if memory_cost:
            kwargs["memory_cost"] = memory_cost
        self._ph = PasswordHasher(**kwargs)

    def hash(self, plaintext: str) -> str:
        return self._ph.hash(plaintext)

    def verify(self, plaintext: str, digest: str | None) -> bool:
        if not digest:
            return False
        try:
            return self._ph.verify(digest, plaintext)
        except (VerificationError, InvalidHashError):
            return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID)."""
    return str(uuid.uuid4())


def generate_token(nbytes: int = 32) -> str:
    """URL-safe random token for email verification links."""
    return secrets.token_urlsafe(nbytes)


def generate_hex(nbytes: int) -> str:
    return secrets.token_hex(nbytes)


class TokenCodec:
    """
    Signs and verifies compact JWTs. The secret and lifetime are passed per
    call so access and refresh tokens never share a key.
    """

    def __init__(self, algorithm: str = "HS256", issuer: str = "stellaraid-api"):
        self.algorithm = algorithm
        self.issuer = issuer

    def sign(self, payload: Dict[str, Any], secret: str, ttl: timedelta, token_type: str) -> str:
        now = utcnow()
        claims = dict(payload)
        claims.update(
            {
                "iss": self.issuer,
                "iat": int(now.timestamp()),
                "exp": int((now + ttl).timestamp()),
                "type": token_type,
                "jti": generate_jti(),
            }
        )
        return jwt.encode(claims, secret, algorithm=self.algorithm)

    def verify(self, token: str, secret: str, expected_type: str) -> Dict[str, Any]:
        """
        Decode and validate a JWT. Raises TokenExpired / InvalidToken.
        expected_type must be "access" or "refresh".
        """
        try:
            decoded = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpired("Token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidToken(f"Invalid token: {exc}") from exc

        if decoded.get("type") != expected_type:
            raise InvalidToken("Wrong token type")
        return decoded
