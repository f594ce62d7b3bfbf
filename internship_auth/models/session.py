"""Login session persistence model."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from internship_auth.core.database import Base
from internship_auth.core.security import utcnow

# Stored before the first refresh token is minted; never equals a SHA-256 digest.
PENDING_REFRESH_HASH = "PENDING"


class AuthSession(Base):
    """One record per login, anchoring the currently valid refresh token.

    Timestamps are naive UTC written by the application, never server-local.
    """

    __tablename__ = "auth_sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    refresh_token_hash = Column(String(64), nullable=False, default=PENDING_REFRESH_HASH)
    previous_token_hash = Column(String(64), nullable=True)
    rotated_at = Column(DateTime, nullable=True)
    is_revoked = Column(Boolean, default=False, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    revoked_reason = Column(String(64), nullable=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    user_agent = Column(String(512), nullable=True)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    last_used_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="sessions")

    __table_args__ = (
        Index("idx_auth_sessions_user_revoked", "user_id", "is_revoked"),
    )

    def __repr__(self):
        return f"<AuthSession(id={self.id}, user_id={self.user_id}, revoked={self.is_revoked})>"
