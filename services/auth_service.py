"""
Authentication flows: register, login, refresh, logout.

All three issuing flows end in sign_tokens(), the single place that mints a
token pair and records the refresh token. Every public method runs as one
storage transaction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from services.errors import (
    EmailAlreadyRegistered,
    InvalidAccessToken,
    InvalidCredentials,
    InvalidRefreshToken,
    UserNotFound,
)
from utils.security import ACCESS, REFRESH, TokenError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class ClientInfo:
    ip_address: str | None = None
    user_agent: str | None = None


class AuthService:
    def __init__(self, users, refresh_tokens, hasher, signer, settings, storage):
        self.users = users
        self.refresh_tokens = refresh_tokens
        self.hasher = hasher
        self.signer = signer
        self.settings = settings
        self.storage = storage

    def register(self, email: str, password: str, name: str, client: ClientInfo | None = None) -> TokenPair:
        """
        Create the account and sign it in. Raises EmailAlreadyRegistered when
        the email is taken, whether caught by the lookup or by the unique index.
        """
        with self.storage.transaction():
            if self.users.find_by_email(email) is not None:
                logger.warning("registration rejected: duplicate email")
                raise EmailAlreadyRegistered()
            password_hash = self.hasher.hash(password)
            user = self.users.create(email=email, password_hash=password_hash, name=name)
            pair = self.sign_tokens(user, client)
        logger.info("registered user %s", user.id)
        return pair

    def login(self, email: str, password: str, client: ClientInfo | None = None) -> TokenPair:
        with self.storage.transaction():
            user = self.users.find_by_email(email)
            if user is None:
                self.hasher.verify_dummy(password)
                logger.warning("login failed")
                raise InvalidCredentials()
            if not self.hasher.verify(password, user.password_hash):
                logger.warning("login failed")
                raise InvalidCredentials()
            if self.hasher.needs_rehash(user.password_hash):
                # Stored under an older work factor
                self.users.update(user.id, password_hash=self.hasher.hash(password))
            pair = self.sign_tokens(user, client)
        logger.info("user %s logged in", user.id)
        return pair

    def refresh(self, user_id: str, raw_refresh_token: str, client: ClientInfo | None = None) -> TokenPair:
        """Rotate: consume the presented refresh token and issue a new pair."""
        with self.storage.transaction():
            self.refresh_tokens.consume(user_id, raw_refresh_token)
            user = self.users.find_by_id(user_id)
            if user is None:
                raise UserNotFound()
            pair = self.sign_tokens(user, client)
        logger.info("rotated refresh token for user %s", user_id)
        return pair

    def logout(self, user_id: str, raw_refresh_token: str) -> int:
        """
        End every session of the user. The presented refresh token must still
        be live, otherwise InvalidRefreshToken and nothing is removed.
        """
        with self.storage.transaction():
            self.refresh_tokens.consume(user_id, raw_refresh_token)
            removed = 1 + self.refresh_tokens.revoke_all(user_id)
        logger.info("user %s logged out (%d refresh token(s) removed)", user_id, removed)
        return removed

    def sign_tokens(self, user, client: ClientInfo | None = None) -> TokenPair:
        """Mint an access/refresh pair for the user and persist the refresh side."""
        claims = {"sub": str(user.id), "email": user.email}
        access_token = self.signer.issue(
            {**claims, "type": ACCESS}, self.settings.access_secret, self.settings.access_ttl
        )
        refresh_token = self.signer.issue(
            {**claims, "type": REFRESH}, self.settings.refresh_secret, self.settings.refresh_ttl
        )
        client = client or ClientInfo()
        self.refresh_tokens.issue_for(
            user.id,
            refresh_token,
            expires_at=datetime.now(timezone.utc) + self.settings.refresh_ttl,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    def refresh_subject(self, raw_refresh_token: str) -> str:
        """User id from a refresh token verified with the refresh secret."""
        try:
            claims = self.signer.verify(raw_refresh_token, self.settings.refresh_secret, expected_type=REFRESH)
        except TokenError as exc:
            logger.warning("refresh token rejected: %s", exc)
            raise InvalidRefreshToken() from exc
        return claims["sub"]

    def authenticate(self, access_token: str):
        """User behind an access token. Raises InvalidAccessToken."""
        try:
            claims = self.signer.verify(access_token, self.settings.access_secret, expected_type=ACCESS)
        except TokenError as exc:
            raise InvalidAccessToken() from exc
        # Short unit of work so the lookup does not hold a transaction open
        with self.storage.transaction():
            user = self.users.find_by_id(claims["sub"])
        if user is None:
            raise InvalidAccessToken()
        return user
