"""Pydantic schemas for API validation"""

from internship_auth.schemas.user import (
    UserCreate,
    UserResponse,
    UserLogin,
    UserRole,
    UserStatus,
    UserStatusUpdate,
    TokenResponse,
    RefreshTokenRequest,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    SessionResponse,
)
from internship_auth.schemas.response import APIResponse
from internship_auth.schemas.audit import AuditEventResponse

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "UserRole", "UserStatus", "UserStatusUpdate",
    "TokenResponse", "RefreshTokenRequest", "ChangePasswordRequest",
    "ForgotPasswordRequest", "ResetPasswordRequest", "SessionResponse",
    "AuditEventResponse",
    "APIResponse",
]
