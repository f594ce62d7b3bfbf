"""User administration routes"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from typing import List, Optional

from internship_auth.core.database import get_db
from internship_auth.core.exceptions import ValidationError
from internship_auth.schemas.audit import AuditEventResponse
from internship_auth.schemas.user import UserResponse, UserStatus, UserStatusUpdate
from internship_auth.services.audit_service import audit_service
from internship_auth.services.auth_service import SessionClaims, auth_service
from internship_auth.services.user_service import user_service
from internship_auth.api.deps import client_ip, get_current_admin

router = APIRouter()


@router.get("/", response_model=List[UserResponse])
def get_all_users(
    role: Optional[str] = None,
    status: Optional[str] = None,
    claims: SessionClaims = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """
    Get all users (admin only)

    Args:
        role: Optional role filter
        status: Optional status filter
        claims: Current admin
        db: Database session

    Returns:
        List of users
    """
    users = user_service.get_all_users(db, role, status)
    return [UserResponse.model_validate(user) for user in users]


@router.patch("/{user_id}/status", response_model=UserResponse)
def update_user_status(
    user_id: int,
    body: UserStatusUpdate,
    request: Request,
    claims: SessionClaims = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """
    Activate or deactivate an account (admin only)

    Deactivation revokes every session of the account.
    """
    if user_id == claims.user_id and body.status == UserStatus.INACTIVE:
        raise ValidationError("Admins cannot deactivate their own account")

    user = auth_service.set_user_status(
        db, user_id, body.status, actor_id=claims.user_id, ip_address=client_ip(request)
    )
    return UserResponse.model_validate(user)


@router.get("/{user_id}/audit", response_model=List[AuditEventResponse])
def get_user_audit_events(
    user_id: int,
    action: Optional[str] = None,
    claims: SessionClaims = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """Security audit trail of one user (admin only)"""
    events = audit_service.events_for_user(db, user_id, action)
    return [AuditEventResponse.from_event(event) for event in events]
