"""User model"""

from sqlalchemy import Column, Integer, String, DateTime, Index
from sqlalchemy.orm import relationship

from internship_auth.core.database import Base
from internship_auth.core.security import utcnow


class User(Base):
    """User model for authentication and authorization"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default="student", nullable=False)
    status = Column(String(20), default="active", nullable=False)
    last_login = Column(DateTime)
    password_changed_at = Column(DateTime)
    password_reset_token_hash = Column(String(64), nullable=True, index=True)
    password_reset_expires = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    sessions = relationship("AuthSession", back_populates="user", cascade="all, delete-orphan")
    audit_events = relationship("AuditEvent", back_populates="user", foreign_keys="AuditEvent.user_id")

    __table_args__ = (
        Index('idx_users_role_status', 'role', 'status'),
    )

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"

    def to_dict(self):
        """Convert to dictionary without password or reset secrets"""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_login": self.last_login.isoformat() if self.last_login else None
        }
