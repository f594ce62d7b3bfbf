"""Database models"""

from internship_auth.models.user import User
from internship_auth.models.session import AuthSession
from internship_auth.models.audit import AuditEvent

__all__ = ["User", "AuthSession", "AuditEvent"]
