"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT creation/verification via PyJWT
- SHA-256 digests of refresh tokens for storage lookup
- JTI generation for token identifiers
"""
from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import argon2
import jwt
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

ACCESS = "access"
REFRESH = "refresh"


class HashDecodingError(ValueError):
    """The stored password digest could not be parsed."""


class TokenError(Exception):
    """A JWT failed signature, expiry or type checks."""


@dataclass(frozen=True)
class TokenSettings:
    """Secrets and lifetimes for the two token kinds, built once at start-up."""

    access_secret: str
    refresh_secret: str
    access_ttl: timedelta
    refresh_ttl: timedelta
    algorithm: str = "HS256"
    issuer: str = "accounts-api"

    def __post_init__(self):
        if not self.access_secret or not self.refresh_secret:
            raise ValueError("Token secrets must not be empty")
        if self.access_secret == self.refresh_secret:
            raise ValueError("Access and refresh tokens must use different secrets")

    @classmethod
    def from_config(cls, config) -> "TokenSettings":
        return cls(
            access_secret=config["JWT_SECRET"],
            refresh_secret=config["JWT_REFRESH_SECRET"],
            access_ttl=config["JWT_ACCESS_TTL"],
            refresh_ttl=config["JWT_REFRESH_TTL"],
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            issuer=config.get("JWT_ISSUER", "accounts-api"),
        )


class PasswordHasher:
    """Slow salted one-way hashing with a configurable work factor."""

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4):
        self._ph = argon2.PasswordHasher(
            time_cost=time_cost, memory_cost=memory_cost, parallelism=parallelism
        )
        self._dummy_hash = None

    def hash(self, password: str) -> str:
        """Hash a plaintext password using Argon2
        """
        return self._ph.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a plaintext password against an Argon2 digest
        """
        try:
            return self._ph.verify(password_hash, password)
        except VerifyMismatchError:
            return False
        except InvalidHashError as exc:
            raise HashDecodingError("Malformed password hash") from exc
        except VerificationError:
            return False

    def verify_dummy(self, password: str) -> bool:
        """Burn one verification when there is no stored digest to check."""
        if self._dummy_hash is None:
            self._dummy_hash = self._ph.hash(uuid.uuid4().hex)
        self.verify(password, self._dummy_hash)
        return False

    def needs_rehash(self, password_hash: str) -> bool:
        return self._ph.check_needs_rehash(password_hash)


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return uuid.uuid4().hex


def hash_token(token: str) -> str:
    """SHA-256 hex digest used to store refresh tokens without the raw value."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TokenSigner:
    """Issues and verifies HS256 JWTs. Secrets and lifetimes are passed per call."""

    def __init__(self, algorithm: str = "HS256", issuer: str = "accounts-api"):
        self.algorithm = algorithm
        self.issuer = issuer

    def issue(self, claims: Dict[str, Any], secret: str, ttl: timedelta) -> str:
        now = _now()
        payload = dict(claims)
        payload.update(
            {
                "iss": self.issuer,
                "iat": int(now.timestamp()),
                "exp": int((now + ttl).timestamp()),
                "jti": generate_jti(),
            }
        )
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def verify(self, token: str, secret: str, expected_type: str | None = None) -> Dict[str, Any]:
        """
        Decode and validate a JWT. Raises TokenError on a bad signature, an
        expired token or a token of the wrong type.
        """
        try:
            decoded = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenError("Token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise TokenError(f"Invalid token: {exc}") from exc

        if expected_type is not None and decoded.get("type") != expected_type:
            raise TokenError("Wrong token type")
        return decoded
