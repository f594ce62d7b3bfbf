"""Authentication service - login, session validation, logout and account events"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple
import logging

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from internship_auth.core.exceptions import ResourceNotFoundError, SessionRevokedError
from internship_auth.core.security import ACCESS_TOKEN_TYPE, decode_token
from internship_auth.models.session import AuthSession
from internship_auth.models.user import User
from internship_auth.schemas.user import UserCreate, UserStatus
from internship_auth.services.audit_service import audit_service
from internship_auth.services.email_service import email_service
from internship_auth.services.password_service import password_service
from internship_auth.services.revocation_service import revocation_service
from internship_auth.services.session_store import session_store
from internship_auth.services.token_service import session_id_from_claims, token_service
from internship_auth.services.user_service import user_service

logger = logging.getLogger(__name__)


@dataclass
class SessionClaims:
    """Identity of a request, resolved from a verified access token and live session"""
    user_id: int
    role: str
    session_id: int
    expires_at: datetime
    user: User


class AuthService:
    """Operations exposed to the HTTP layer."""

    @staticmethod
    def register(db: Session, user_data: UserCreate) -> User:
        user = user_service.create_user(db, user_data)
        # Notification only; delivery problems never fail registration.
        if not email_service.send_welcome_email(user):
            logger.warning(f"Welcome email for user {user.id} was not delivered")
        return user

    @staticmethod
    def login(
        db: Session,
        email: str,
        password: str,
        *,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Tuple[User, AuthSession, str, str]:
        """
        Verify credentials and open a new session

        Returns:
            (user, session, access token, refresh token)
        """
        user = user_service.authenticate_user(db, email, password)
        record, access_token, refresh_token = token_service.issue_token_pair(
            db, user, user_agent=user_agent, ip_address=ip_address
        )
        audit_service.log_event(
            db,
            user_id=user.id,
            action="login",
            target_type="session",
            target_id=str(record.id),
            ip_address=ip_address,
        )
        logger.info(f"User {user.id} logged in (session {record.id})")
        return user, record, access_token, refresh_token

    @staticmethod
    def refresh(db: Session, refresh_token: str, *, ip_address: Optional[str] = None) -> Tuple[User, str, str]:
        user, _record, access_token, new_refresh_token = token_service.rotate_refresh_token(
            db, refresh_token, ip_address=ip_address
        )
        return user, access_token, new_refresh_token

    @staticmethod
    def get_session_claims(db: Session, access_token: str) -> SessionClaims:
        """
        Resolve an access token to the caller's identity

        A well-formed, unexpired token is not enough: its session must still be
        live and its user active. Role comes from the user record, not the token.
        """
        payload = decode_token(access_token, expected_type=ACCESS_TOKEN_TYPE)
        session_id = session_id_from_claims(payload)

        record = session_store.find_by_id(db, session_id)
        if not session_store.is_active(record) or str(record.user_id) != str(payload["sub"]):
            raise SessionRevokedError()

        user = user_service.get_user_by_id(db, record.user_id)
        if not user or not user.is_active:
            raise SessionRevokedError()

        return SessionClaims(
            user_id=user.id,
            role=user.role,
            session_id=record.id,
            expires_at=datetime.utcfromtimestamp(payload["exp"]),
            user=user,
        )

    @staticmethod
    def logout(db: Session, session_id: int, *, ip_address: Optional[str] = None) -> bool:
        record = session_store.find_by_id(db, session_id)
        revoked = revocation_service.logout(db, session_id)
        if record is not None:
            audit_service.log_event(
                db,
                user_id=record.user_id,
                action="logout",
                target_type="session",
                target_id=str(session_id),
                ip_address=ip_address,
                commit=False,
            )
        db.commit()
        return revoked

    @staticmethod
    def logout_all(db: Session, user_id: int, *, ip_address: Optional[str] = None) -> int:
        count = revocation_service.logout_all(db, user_id)
        audit_service.log_event(
            db,
            user_id=user_id,
            action="logout_all",
            target_type="user",
            target_id=str(user_id),
            ip_address=ip_address,
            metadata={"revoked_sessions": count},
            commit=False,
        )
        db.commit()
        return count

    @staticmethod
    def get_profile(db: Session, user_id: int) -> User:
        user = user_service.get_user_by_id(db, user_id)
        if not user:
            raise ResourceNotFoundError("User")
        return user

    @staticmethod
    def list_sessions(db: Session, user_id: int) -> List[AuthSession]:
        return session_store.list_for_user(db, user_id, active_only=True)

    @staticmethod
    def request_password_reset(db: Session, email: str, background_tasks: BackgroundTasks) -> str:
        return password_service.request_reset(db, email, background_tasks)

    @staticmethod
    def redeem_password_reset(db: Session, token: str, new_password: str, *, ip_address: Optional[str] = None) -> None:
        password_service.redeem(db, token, new_password, ip_address=ip_address)

    @staticmethod
    def change_password(
        db: Session,
        claims: SessionClaims,
        current_password: str,
        new_password: str,
        *,
        ip_address: Optional[str] = None,
    ) -> int:
        return password_service.change_password(
            db,
            claims.user_id,
            current_password,
            new_password,
            claims.session_id,
            ip_address=ip_address,
        )

    @staticmethod
    def set_user_status(
        db: Session,
        user_id: int,
        status: UserStatus,
        *,
        actor_id: Optional[int] = None,
        ip_address: Optional[str] = None,
    ) -> User:
        """Activate or deactivate an account; deactivation revokes every session"""
        user = user_service.set_status(db, user_id, status)
        revoked = 0
        if status == UserStatus.INACTIVE:
            revoked = revocation_service.on_account_deactivation(db, user.id)
        audit_service.log_event(
            db,
            user_id=user.id,
            actor_id=actor_id,
            action="account_deactivated" if status == UserStatus.INACTIVE else "account_activated",
            target_type="user",
            target_id=str(user.id),
            ip_address=ip_address,
            metadata={"revoked_sessions": revoked},
            commit=False,
        )
        db.commit()
        db.refresh(user)
        return user


auth_service = AuthService()
