"""Session revocation triggered by logout and account security events."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from internship_auth.services.session_store import session_store

logger = logging.getLogger(__name__)


class RevocationService:
    """Mark one or all of a user's sessions revoked.

    Every operation is idempotent: already revoked sessions are left as they
    are and no other session field is touched. Methods flush but leave the
    commit to the caller so revocation lands together with the change that
    caused it.
    """

    @staticmethod
    def logout(db: Session, session_id: int) -> bool:
        revoked = session_store.revoke(db, session_id, reason="logout")
        return revoked > 0

    @staticmethod
    def logout_all(db: Session, user_id: int) -> int:
        count = session_store.revoke_all_for_user(db, user_id, reason="logout_all")
        logger.info(f"Signed user {user_id} out of {count} sessions")
        return count

    @staticmethod
    def on_password_change(db: Session, user_id: int, current_session_id: Optional[int]) -> int:
        """Revoke every session except the one that changed the password."""
        count = session_store.revoke_all_for_user(
            db, user_id, except_session_id=current_session_id, reason="password_changed"
        )
        logger.info(f"Password change for user {user_id} revoked {count} other sessions")
        return count

    @staticmethod
    def on_password_reset(db: Session, user_id: int) -> int:
        count = session_store.revoke_all_for_user(db, user_id, reason="password_reset")
        logger.info(f"Password reset for user {user_id} revoked {count} sessions")
        return count

    @staticmethod
    def on_account_deactivation(db: Session, user_id: int) -> int:
        count = session_store.revoke_all_for_user(db, user_id, reason="account_deactivated")
        logger.info(f"Deactivation of user {user_id} revoked {count} sessions")
        return count


revocation_service = RevocationService()
