"""Session store - persistence and conditional updates for login sessions.

Every mutation that must be serialized per session is a single conditional
UPDATE, so correctness never depends on in-process locks and holds across
several API replicas sharing one database.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from internship_auth.config import settings
from internship_auth.core.security import naive_utc, utcnow
from internship_auth.models.session import AuthSession, PENDING_REFRESH_HASH

logger = logging.getLogger(__name__)


class SessionStore:
    """Data access for AuthSession records."""

    @staticmethod
    def create(
        db: Session,
        *,
        user_id: int,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
        ttl: Optional[timedelta] = None,
    ) -> AuthSession:
        """
        Create a session holding the placeholder hash.

        The refresh token embeds the session id, so the real hash is attached
        afterwards with attach_refresh_token(). Flushes but does not commit.
        """
        now = utcnow()
        record = AuthSession(
            user_id=user_id,
            refresh_token_hash=PENDING_REFRESH_HASH,
            is_revoked=False,
            expires_at=now + (ttl or timedelta(days=settings.SESSION_TTL_DAYS)),
            user_agent=user_agent[:512] if user_agent else None,
            ip_address=ip_address,
            last_used_at=now,
        )
        db.add(record)
        db.flush()
        return record

    @staticmethod
    def attach_refresh_token(db: Session, session_id: int, token_hash: str) -> bool:
        """Replace the placeholder hash with the first refresh-token hash."""
        updated = (
            db.query(AuthSession)
            .filter(
                AuthSession.id == session_id,
                AuthSession.refresh_token_hash == PENDING_REFRESH_HASH,
            )
            .update({AuthSession.refresh_token_hash: token_hash}, synchronize_session="fetch")
        )
        return updated == 1

    @staticmethod
    def find_by_id(db: Session, session_id: int) -> Optional[AuthSession]:
        return db.query(AuthSession).filter(AuthSession.id == session_id).first()

    @staticmethod
    def is_active(record: Optional[AuthSession], now: Optional[datetime] = None) -> bool:
        """A session is usable when it exists, is not revoked and has not expired."""
        if record is None or record.is_revoked:
            return False
        expires_at = naive_utc(record.expires_at)
        return expires_at is not None and expires_at > (now or utcnow())

    @staticmethod
    def swap_refresh_token_hash(
        db: Session,
        session_id: int,
        expected_hash: str,
        new_hash: str,
    ) -> bool:
        """
        Compare-and-swap the current refresh-token hash.

        Writes new_hash only if the stored hash still equals expected_hash and
        the session is live. Of several concurrent callers presenting the same
        expected_hash exactly one gets True. Does not commit.
        """
        now = utcnow()
        updated = (
            db.query(AuthSession)
            .filter(
                AuthSession.id == session_id,
                AuthSession.refresh_token_hash == expected_hash,
                AuthSession.is_revoked.is_(False),
                AuthSession.expires_at > now,
            )
            .update(
                {
                    AuthSession.refresh_token_hash: new_hash,
                    AuthSession.previous_token_hash: expected_hash,
                    AuthSession.rotated_at: now,
                    AuthSession.last_used_at: now,
                },
                synchronize_session="fetch",
            )
        )
        return updated == 1

    @staticmethod
    def revoke_if_hash_mismatch(
        db: Session,
        session_id: int,
        presented_hash: str,
        reason: str = "refresh_token_reuse",
    ) -> bool:
        """
        Revoke the session unless presented_hash is its current hash.

        Verification and revocation happen in one statement so a detected
        replay can never be reported while the session stays active.
        Returns True when this call revoked the session. Does not commit.
        """
        updated = (
            db.query(AuthSession)
            .filter(
                AuthSession.id == session_id,
                AuthSession.refresh_token_hash != presented_hash,
                AuthSession.is_revoked.is_(False),
            )
            .update(
                {
                    AuthSession.is_revoked: True,
                    AuthSession.revoked_at: utcnow(),
                    AuthSession.revoked_reason: reason,
                },
                synchronize_session="fetch",
            )
        )
        return updated == 1

    @staticmethod
    def revoke(db: Session, session_id: int, reason: str = "logout") -> int:
        """Revoke one session. Idempotent; returns 1 if it was live. Does not commit."""
        return (
            db.query(AuthSession)
            .filter(AuthSession.id == session_id, AuthSession.is_revoked.is_(False))
            .update(
                {
                    AuthSession.is_revoked: True,
                    AuthSession.revoked_at: utcnow(),
                    AuthSession.revoked_reason: reason,
                },
                synchronize_session="fetch",
            )
        )

    @staticmethod
    def revoke_all_for_user(
        db: Session,
        user_id: int,
        *,
        except_session_id: Optional[int] = None,
        reason: str,
    ) -> int:
        """Revoke every live session of a user, optionally sparing one. Does not commit."""
        query = db.query(AuthSession).filter(
            AuthSession.user_id == user_id,
            AuthSession.is_revoked.is_(False),
        )
        if except_session_id is not None:
            query = query.filter(AuthSession.id != except_session_id)
        return query.update(
            {
                AuthSession.is_revoked: True,
                AuthSession.revoked_at: utcnow(),
                AuthSession.revoked_reason: reason,
            },
            synchronize_session="fetch",
        )

    @staticmethod
    def list_for_user(db: Session, user_id: int, active_only: bool = True) -> List[AuthSession]:
        query = db.query(AuthSession).filter(AuthSession.user_id == user_id)
        if active_only:
            query = query.filter(
                AuthSession.is_revoked.is_(False),
                AuthSession.expires_at > utcnow(),
            )
        return query.order_by(AuthSession.created_at.desc(), AuthSession.id.desc()).all()

    @staticmethod
    def purge_expired(db: Session, now: Optional[datetime] = None) -> int:
        """Delete sessions whose expiry has passed. Commits."""
        cutoff = now or utcnow()
        deleted = (
            db.query(AuthSession)
            .filter(AuthSession.expires_at <= cutoff)
            .delete(synchronize_session=False)
        )
        db.commit()
        if deleted:
            logger.info(f"Purged {deleted} expired sessions")
        return deleted


session_store = SessionStore()
