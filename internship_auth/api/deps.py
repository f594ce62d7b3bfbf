"""API dependencies - authentication and authorization"""

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Callable, Optional

from internship_auth.core.database import get_db
from internship_auth.core.exceptions import AuthenticationError, AuthorizationError
from internship_auth.schemas.user import UserRole, has_role_at_least
from internship_auth.services.auth_service import SessionClaims, auth_service

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def get_session_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> SessionClaims:
    """
    Resolve the caller from the Bearer access token

    Args:
        credentials: HTTP Bearer credentials
        db: Database session

    Returns:
        Claims of a live session

    Raises:
        AuthenticationError: If the header is missing, the token is invalid
            or expired, or its session has been revoked
    """
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Access token required")
    return auth_service.get_session_claims(db, credentials.credentials)


def require_role(minimum_role: UserRole) -> Callable[..., SessionClaims]:
    """
    Build a dependency admitting users at or above minimum_role

    Args:
        minimum_role: Lowest role allowed through

    Returns:
        FastAPI dependency yielding the caller's claims
    """
    def _dependency(claims: SessionClaims = Depends(get_session_claims)) -> SessionClaims:
        if not has_role_at_least(claims.role, minimum_role.value):
            raise AuthorizationError("Access denied. Insufficient role level")
        return claims

    return _dependency


get_current_admin = require_role(UserRole.ADMIN)
