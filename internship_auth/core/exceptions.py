"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error"""
    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=401, details=details)


class InvalidCredentialsError(AuthenticationError):
    """Invalid email or password, or inactive account"""
    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class TokenExpiredError(AuthenticationError):
    """JWT token signature is valid but past its expiry"""
    def __init__(self):
        super().__init__("Token has expired")


class TokenInvalidError(AuthenticationError):
    """JWT token is malformed, mis-signed, or minted for another purpose"""
    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class SessionRevokedError(AuthenticationError):
    """Session is missing, expired, or explicitly revoked"""
    def __init__(self):
        super().__init__("Session expired")


class ReuseDetectedError(AuthenticationError):
    """A rotated-away refresh token was presented again; the session is revoked"""
    def __init__(self):
        super().__init__("Token reuse detected")


# Authorization Errors
class AuthorizationError(BaseAPIException):
    """Insufficient permissions"""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403)


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


# Validation Errors
class ValidationError(BaseAPIException):
    """Validation error"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=422, details=details)


# Business Logic Errors
class BusinessLogicError(BaseAPIException):
    """Business logic error"""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class ResetTokenInvalidError(BusinessLogicError):
    """Password reset secret is unknown, already used, or expired"""
    def __init__(self):
        super().__init__("Password reset token is invalid or has expired")


class DuplicateEmailError(BaseAPIException):
    """Email already registered"""
    def __init__(self, email: str):
        super().__init__(f"Email '{email}' is already registered", status_code=409)


# Concurrency Errors
class ConcurrentModificationError(BaseAPIException):
    """Concurrent modification detected"""
    def __init__(self, message: str = "Resource was modified by another request"):
        super().__init__(message, status_code=409)


class RotationConflictError(ConcurrentModificationError):
    """Another request rotated this refresh token first; safe to retry"""
    def __init__(self):
        super().__init__("Refresh token was rotated by a concurrent request. Please retry.")


class RateLimitExceededError(BaseAPIException):
    """Rate limit exceeded"""
    def __init__(self, message: str = "Rate limit exceeded. Please try again later."):
        super().__init__(message, status_code=429)
