"""
Refresh token rows: issue, single-use consume, revoke.

Only SHA-256 digests of raw tokens are stored. One active row per user:
issuing deletes the user's previous rows first. All statements run in the
caller's transaction.
"""
from __future__ import annotations

from datetime import datetime, timezone
import logging

from sqlalchemy import delete

from models.refresh_token import RefreshToken
from services.errors import InvalidRefreshToken
from utils.security import hash_token

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshTokenStore:
    def __init__(self, storage, clock=_utcnow):
        self.storage = storage
        self.clock = clock

    @property
    def session(self):
        return self.storage.get_session()

    def issue_for(
        self,
        user_id: str,
        raw_token: str,
        expires_at: datetime,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> RefreshToken:
        """Replace every refresh row of the user with a single new one."""
        self.session.execute(
            delete(RefreshToken).where(RefreshToken.user_id == user_id),
            execution_options={"synchronize_session": False},
        )
        row = RefreshToken(
            user_id=user_id,
            token_hash=hash_token(raw_token),
            expires_at=expires_at,
            revoked=False,
            ip_address=_clip(ip_address),
            user_agent=_clip(user_agent),
        )
        self.session.add(row)
        self.session.flush()
        return row

    def consume(self, user_id: str, raw_token: str) -> None:
        """
        Delete the live row matching the token. Raises InvalidRefreshToken when
        there is none: unknown, revoked, expired or already consumed.

        The lookup and the delete are one statement, so of two concurrent
        consumers of the same row exactly one sees a deleted row.
        """
        result = self.session.execute(
            delete(RefreshToken).where(
                RefreshToken.user_id == user_id,
                RefreshToken.token_hash == hash_token(raw_token),
                RefreshToken.revoked.is_(False),
                RefreshToken.expires_at > self.clock(),
            ),
            execution_options={"synchronize_session": False},
        )
        if result.rowcount != 1:
            logger.debug("no live refresh token for user %s", user_id)
            raise InvalidRefreshToken()

    def revoke_all(self, user_id: str) -> int:
        """Delete every refresh row of the user. Zero rows is fine."""
        result = self.session.execute(
            delete(RefreshToken).where(RefreshToken.user_id == user_id),
            execution_options={"synchronize_session": False},
        )
        return result.rowcount

