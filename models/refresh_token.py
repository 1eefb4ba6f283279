"""
RefreshToken model: one row per currently valid refresh credential.
Fields:
- user_id (String(36)) - FK to users.id, removed with the user
- token_hash - SHA-256 of the raw token; the raw token is never stored
- expires_at, created_at
- revoked (bool)
- ip_address, user_agent - optional client metadata
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, false
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from models.base_model import Base, _uuid_str


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = Column(String(36), primary_key=True, default=_uuid_str, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token_hash = Column(String(255), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    revoked = Column(Boolean, default=False, server_default=false(), nullable=False)
    ip_address = Column(String(255), nullable=True)
    user_agent = Column(String(255), nullable=True)

    user = relationship("User", back_populates="refresh_tokens")

    __table_args__ = (
        Index("ix_refresh_tokens_user_id_token_hash", "user_id", "token_hash"),
    )

    def __repr__(self):
        return f"<RefreshToken user={self.user_id} expires_at={self.expires_at}>"
