"""Security audit trail of account and session events."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import relationship

from internship_auth.core.database import Base
from internship_auth.core.security import utcnow


class AuditEvent(Base):
    """
    One security event about an account.

    user_id is the account the event concerns; actor_id is whoever caused it
    when that is someone else (an admin deactivating the account). Rows are
    append-only.
    """

    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(64), nullable=False, index=True)
    target_type = Column(String(64), nullable=True)
    target_id = Column(String(128), nullable=True)
    ip_address = Column(String(64), nullable=True)
    metadata_json = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="audit_events", foreign_keys=[user_id])

    __table_args__ = (
        Index("idx_audit_events_user_action", "user_id", "action"),
    )

    def __repr__(self):
        return f"<AuditEvent(id={self.id}, user_id={self.user_id}, action='{self.action}')>"
