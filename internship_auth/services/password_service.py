"""Password reset and password change flows."""

from __future__ import annotations

from datetime import timedelta
from typing import Optional
import logging
import time

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from internship_auth.config import settings
from internship_auth.core.database import SessionLocal
from internship_auth.core.exceptions import (
    InvalidCredentialsError,
    ResetTokenInvalidError,
    ValidationError,
)
from internship_auth.core.security import (
    generate_reset_secret,
    get_password_hash,
    hash_token,
    utcnow,
    validate_password_strength,
)
from internship_auth.services.audit_service import audit_service
from internship_auth.services.email_service import email_service, redact_email
from internship_auth.services.revocation_service import revocation_service
from internship_auth.services.user_service import user_service

logger = logging.getLogger(__name__)

GENERIC_RESET_MESSAGE = "If an account exists for that email, a password reset link has been sent."


class PasswordService:
    """Reset secrets, password replacement and the session revocations they imply."""

    @staticmethod
    def _pad_response_time(started: float) -> None:
        # Both the known and unknown account paths end no earlier than the floor.
        floor = settings.PASSWORD_RESET_MIN_RESPONSE_MS / 1000.0
        remaining = floor - (time.monotonic() - started)
        if remaining > 0:
            time.sleep(remaining)

    @staticmethod
    def request_reset(db: Session, email: str, background_tasks: BackgroundTasks) -> str:
        """
        Start a password reset.

        Always returns the same message whether or not the account exists.
        Only the lookup and the stored hash happen before the response, padded
        to the configured floor; the email goes out through background_tasks
        after the response, so SMTP latency or outages never reach the caller.

        Args:
            db: Database session
            email: Address the reset was requested for
            background_tasks: Queue run after the response is sent

        Returns:
            Generic confirmation message
        """
        started = time.monotonic()
        try:
            user = user_service.get_user_by_email(db, email)
            secret = generate_reset_secret()
            token_hash = hash_token(secret)

            if not user or not user.is_active:
                logger.info(f"Password reset requested for unknown or inactive account {redact_email(email)}")
                return GENERIC_RESET_MESSAGE

            expires_at = utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
            user_service.set_reset_secret(db, user, token_hash, expires_at)
            background_tasks.add_task(PasswordService.deliver_reset_email, user.id, secret)
            return GENERIC_RESET_MESSAGE
        finally:
            PasswordService._pad_response_time(started)

    @staticmethod
    def deliver_reset_email(user_id: int, secret: str) -> bool:
        """
        Send a reset secret in its own database session.

        If delivery fails the stored hash is withdrawn so no usable token
        remains, unless a newer request has already replaced it.
        """
        db = SessionLocal()
        try:
            user = user_service.get_user_by_id(db, user_id)
            if not user or not user.is_active:
                return False
            if email_service.send_password_reset_email(user, secret):
                logger.info(f"Password reset secret issued for user {user_id}")
                return True
            user_service.clear_reset_secret(db, user_id, hash_token(secret))
            logger.warning(f"Reset email to user {user_id} failed; reset secret withdrawn")
            return False
        finally:
            db.close()

    @staticmethod
    def redeem(db: Session, token: str, new_password: str, *, ip_address: Optional[str] = None) -> None:
        """
        Redeem a reset secret: set the new password and revoke every session.

        Raises:
            ResetTokenInvalidError: unknown, expired, or already used secret
            ValidationError: new password violates the policy
        """
        validate_password_strength(new_password)

        token_hash = hash_token(token or "")
        user = user_service.get_user_by_reset_hash(db, token_hash)
        if not user:
            raise ResetTokenInvalidError()

        consumed = user_service.update_password_hash(
            db, user.id, get_password_hash(new_password), expected_reset_hash=token_hash
        )
        if not consumed:
            db.rollback()
            raise ResetTokenInvalidError()

        revoked = revocation_service.on_password_reset(db, user.id)
        audit_service.log_event(
            db,
            user_id=user.id,
            action="password_reset",
            target_type="user",
            target_id=str(user.id),
            ip_address=ip_address,
            metadata={"revoked_sessions": revoked},
            commit=False,
        )
        db.commit()
        logger.info(f"Password reset completed for user {user.id}")

    @staticmethod
    def change_password(
        db: Session,
        user_id: int,
        current_password: str,
        new_password: str,
        current_session_id: Optional[int],
        *,
        ip_address: Optional[str] = None,
    ) -> int:
        """
        Change the password of a signed-in user, keeping only the current session.

        Returns:
            Number of other sessions revoked
        """
        user = user_service.get_user_by_id(db, user_id)
        if not user or not user.is_active:
            raise InvalidCredentialsError()

        if not user_service.compare_password_hash(user, current_password):
            raise InvalidCredentialsError("Current password is incorrect")

        validate_password_strength(new_password)
        if new_password == current_password:
            raise ValidationError("New password must differ from the current password")

        user_service.update_password_hash(db, user.id, get_password_hash(new_password))
        revoked = revocation_service.on_password_change(db, user.id, current_session_id)
        audit_service.log_event(
            db,
            user_id=user.id,
            action="password_changed",
            target_type="user",
            target_id=str(user.id),
            ip_address=ip_address,
            metadata={"revoked_sessions": revoked, "kept_session": current_session_id},
            commit=False,
        )
        db.commit()
        return revoked


password_service = PasswordService()
