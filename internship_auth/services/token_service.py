"""Refresh token rotation and reuse detection."""

from __future__ import annotations

from datetime import timedelta
from typing import Optional, Tuple
import hmac
import logging

from sqlalchemy.orm import Session

from internship_auth.config import settings
from internship_auth.core.exceptions import (
    RotationConflictError,
    ReuseDetectedError,
    SessionRevokedError,
    TokenInvalidError,
)
from internship_auth.core.security import (
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_token,
    naive_utc,
    token_hash_matches,
    utcnow,
)
from internship_auth.models.session import AuthSession
from internship_auth.models.user import User
from internship_auth.services.audit_service import audit_service
from internship_auth.services.session_store import session_store
from internship_auth.services.user_service import user_service

logger = logging.getLogger(__name__)


def session_id_from_claims(payload: dict) -> int:
    try:
        return int(payload["sid"])
    except (KeyError, TypeError, ValueError):
        raise TokenInvalidError("Malformed token")


class TokenService:
    """Issue session-bound token pairs and rotate refresh tokens.

    A session is ACTIVE while it holds one valid refresh-token hash. Each
    successful rotation swaps that hash for a new one; presenting any older
    token moves the session to REVOKED, which is terminal.
    """

    @staticmethod
    def _mint_pair(user: User, record: AuthSession) -> Tuple[str, str]:
        refresh_token = create_refresh_token(str(user.id), str(record.id))
        access_token = create_access_token(str(user.id), str(record.id), user.role)
        return access_token, refresh_token

    @staticmethod
    def issue_token_pair(
        db: Session,
        user: User,
        *,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Tuple[AuthSession, str, str]:
        """
        Open a session for an authenticated user and mint its first token pair.

        The session is created with a placeholder hash first because the
        refresh token has to embed the session id. Commits.
        """
        record = session_store.create(db, user_id=user.id, user_agent=user_agent, ip_address=ip_address)
        access_token, refresh_token = TokenService._mint_pair(user, record)
        if not session_store.attach_refresh_token(db, record.id, hash_token(refresh_token)):
            db.rollback()
            raise RotationConflictError()
        user_service.record_login(db, user)
        db.commit()
        db.refresh(record)
        return record, access_token, refresh_token

    @staticmethod
    def _within_grace_window(record: AuthSession, presented_hash: str) -> bool:
        grace = settings.REFRESH_REUSE_GRACE_SECONDS
        if grace <= 0 or not record.previous_token_hash or record.rotated_at is None:
            return False
        if not hmac.compare_digest(presented_hash, record.previous_token_hash):
            return False
        return utcnow() - naive_utc(record.rotated_at) <= timedelta(seconds=grace)

    @staticmethod
    def _reject_replay(db: Session, record: AuthSession, presented_hash: str, ip_address: Optional[str]) -> None:
        revoked = session_store.revoke_if_hash_mismatch(db, record.id, presented_hash)
        audit_service.log_event(
            db,
            user_id=record.user_id,
            action="refresh_reuse_detected",
            target_type="session",
            target_id=str(record.id),
            ip_address=ip_address,
            metadata={"revoked": revoked},
            commit=False,
        )
        db.commit()
        logger.warning(
            f"Refresh token reuse detected for session {record.id} (user {record.user_id}); session revoked"
        )
        raise ReuseDetectedError()

    @staticmethod
    def rotate_refresh_token(
        db: Session,
        refresh_token: str,
        *,
        ip_address: Optional[str] = None,
    ) -> Tuple[User, AuthSession, str, str]:
        """
        Exchange a refresh token for a new access/refresh pair.

        Raises:
            TokenExpiredError / TokenInvalidError: token itself unusable
            SessionRevokedError: session gone, revoked, expired, or user inactive
            ReuseDetectedError: superseded token presented; session now revoked
            RotationConflictError: a concurrent rotation won the swap; retryable
        """
        payload = decode_token(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
        session_id = session_id_from_claims(payload)

        record = session_store.find_by_id(db, session_id)
        if not session_store.is_active(record) or str(record.user_id) != str(payload["sub"]):
            raise SessionRevokedError()

        presented_hash = hash_token(refresh_token)
        if not token_hash_matches(refresh_token, record.refresh_token_hash):
            if TokenService._within_grace_window(record, presented_hash):
                logger.info(f"Superseded refresh token retried within grace window for session {record.id}")
                raise RotationConflictError()
            TokenService._reject_replay(db, record, presented_hash, ip_address)

        user = user_service.get_user_by_id(db, record.user_id)
        if not user or not user.is_active:
            raise SessionRevokedError()

        access_token, new_refresh_token = TokenService._mint_pair(user, record)
        if not session_store.swap_refresh_token_hash(db, record.id, presented_hash, hash_token(new_refresh_token)):
            db.rollback()
            current = session_store.find_by_id(db, session_id)
            if not session_store.is_active(current):
                raise SessionRevokedError()
            logger.info(f"Lost refresh rotation race for session {session_id}")
            raise RotationConflictError()

        db.commit()
        db.refresh(record)
        return user, record, access_token, new_refresh_token


token_service = TokenService()
