"""User and authentication schemas"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime
from enum import Enum


class UserRole(str, Enum):
    """User role enumeration"""
    ADMIN = "admin"
    TRAINER = "trainer"
    STUDENT = "student"


ROLE_HIERARCHY = {
    UserRole.ADMIN.value: 3,
    UserRole.TRAINER.value: 2,
    UserRole.STUDENT.value: 1,
}


def has_role_at_least(user_role: str, required_role: str) -> bool:
    """Check whether user_role ranks at or above required_role"""
    return ROLE_HIERARCHY.get(user_role, 0) >= ROLE_HIERARCHY.get(required_role, 0)


class UserStatus(str, Enum):
    """Account status enumeration"""
    ACTIVE = "active"
    INACTIVE = "inactive"


class UserCreate(BaseModel):
    """User registration schema"""
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    role: UserRole = UserRole.STUDENT

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        """Trim surrounding whitespace"""
        v = v.strip()
        if len(v) < 2:
            raise ValueError('Name must be at least 2 characters')
        return v

    @field_validator('email')
    @classmethod
    def lower_email(cls, v):
        return v.strip().lower()


class UserLogin(BaseModel):
    """User login schema"""
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class RefreshTokenRequest(BaseModel):
    """Refresh token rotation request"""
    refresh_token: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    """Password change for the signed-in user"""
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)


class ForgotPasswordRequest(BaseModel):
    """Password reset request"""
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Password reset redemption"""
    token: str = Field(..., min_length=1, max_length=256)
    new_password: str = Field(..., min_length=8, max_length=128)


class UserStatusUpdate(BaseModel):
    """Admin account activation toggle"""
    status: UserStatus


class UserResponse(BaseModel):
    """User response schema"""
    id: int
    name: str
    email: str
    role: str
    status: str
    created_at: Optional[datetime]
    last_login: Optional[datetime]

    class Config:
        from_attributes = True


class SessionResponse(BaseModel):
    """Login session as shown to its owner"""
    id: int
    user_agent: Optional[str]
    ip_address: Optional[str]
    created_at: Optional[datetime]
    last_used_at: Optional[datetime]
    expires_at: datetime
    current: bool = False

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    """JWT token pair response"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
