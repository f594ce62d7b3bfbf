"""User service - user record store and credential verification"""

from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime
from internship_auth.models.user import User
from internship_auth.schemas.user import UserCreate, UserStatus
from internship_auth.core.security import (
    burn_password_check,
    get_password_hash,
    utcnow,
    validate_password_strength,
    verify_password,
)
from internship_auth.core.exceptions import (
    InvalidCredentialsError,
    DuplicateEmailError,
    ResourceNotFoundError,
)
import logging

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class UserService:
    """Service for user records.

    Only the password reset flow and password change write the password hash
    and reset fields; everything else here reads them.
    """

    @staticmethod
    def create_user(db: Session, user_data: UserCreate) -> User:
        """
        Create new user

        Args:
            db: Database session
            user_data: User creation data

        Returns:
            Created user
        """
        email = normalize_email(user_data.email)
        if UserService.get_user_by_email(db, email):
            raise DuplicateEmailError(email)

        validate_password_strength(user_data.password)

        user = User(
            name=user_data.name,
            email=email,
            password_hash=get_password_hash(user_data.password),
            role=user_data.role.value,
            status=UserStatus.ACTIVE.value,
        )

        db.add(user)
        db.commit()
        db.refresh(user)

        logger.info(f"Created user: {user.id} (role: {user.role})")
        return user

    @staticmethod
    def authenticate_user(db: Session, email: str, password: str) -> User:
        """
        Verify email and password against the stored hash

        Unknown, inactive and wrong-password cases fail identically and take
        comparable time.

        Args:
            db: Database session
            email: Email address
            password: Plain text password

        Returns:
            Authenticated user
        """
        user = UserService.get_user_by_email(db, email)

        if not user:
            burn_password_check(password)
            raise InvalidCredentialsError()

        if not UserService.compare_password_hash(user, password):
            raise InvalidCredentialsError()

        if not user.is_active:
            raise InvalidCredentialsError()

        return user

    @staticmethod
    def compare_password_hash(user: User, password: str) -> bool:
        """Constant-time bcrypt comparison against the user's stored hash"""
        return verify_password(password, user.password_hash)

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by email (case-insensitive)"""
        return db.query(User).filter(User.email == normalize_email(email)).first()

    @staticmethod
    def get_user_by_reset_hash(db: Session, token_hash: str, now: Optional[datetime] = None) -> Optional[User]:
        """Find the active user holding an unexpired reset secret with this hash"""
        return (
            db.query(User)
            .filter(
                User.password_reset_token_hash == token_hash,
                User.password_reset_expires > (now or utcnow()),
                User.status == UserStatus.ACTIVE.value,
            )
            .first()
        )

    @staticmethod
    def update_password_hash(
        db: Session,
        user_id: int,
        password_hash: str,
        *,
        expected_reset_hash: Optional[str] = None,
    ) -> bool:
        """
        Replace the password hash, bump password_changed_at and drop any
        pending reset secret in the same statement

        With expected_reset_hash the write only happens if that reset secret
        is still stored, so a reset token can be redeemed at most once. Does
        not commit.

        Returns:
            True if a row was updated
        """
        values = {
            User.password_hash: password_hash,
            User.password_changed_at: utcnow(),
            User.password_reset_token_hash: None,
            User.password_reset_expires: None,
        }
        query = db.query(User).filter(User.id == user_id)
        if expected_reset_hash is not None:
            query = query.filter(User.password_reset_token_hash == expected_reset_hash)
        return query.update(values, synchronize_session="fetch") == 1

    @staticmethod
    def set_reset_secret(db: Session, user: User, token_hash: str, expires_at: datetime) -> None:
        """Store a reset secret hash and expiry, replacing any earlier one"""
        user.password_reset_token_hash = token_hash
        user.password_reset_expires = expires_at
        db.commit()

    @staticmethod
    def clear_reset_secret(db: Session, user_id: int, token_hash: str) -> bool:
        """Forget a pending reset secret, unless a newer request already replaced it"""
        cleared = (
            db.query(User)
            .filter(User.id == user_id, User.password_reset_token_hash == token_hash)
            .update(
                {User.password_reset_token_hash: None, User.password_reset_expires: None},
                synchronize_session="fetch",
            )
        )
        db.commit()
        return cleared == 1

    @staticmethod
    def record_login(db: Session, user: User) -> None:
        """Stamp last_login. Does not commit."""
        user.last_login = utcnow()

    @staticmethod
    def set_status(db: Session, user_id: int, status: UserStatus) -> User:
        """
        Activate or deactivate a user. Does not commit.

        Args:
            db: Database session
            user_id: User ID
            status: New status

        Returns:
            Updated user
        """
        user = UserService.get_user_by_id(db, user_id)
        if not user:
            raise ResourceNotFoundError("User")

        user.status = status.value
        db.flush()
        return user

    @staticmethod
    def get_all_users(db: Session, role: Optional[str] = None, status: Optional[str] = None) -> List[User]:
        """
        Get all users, optionally filtered by role and status

        Args:
            db: Database session
            role: Optional role filter
            status: Optional status filter

        Returns:
            List of users
        """
        query = db.query(User)

        if role:
            query = query.filter(User.role == role)
        if status:
            query = query.filter(User.status == status)

        return query.order_by(User.id.asc()).all()


# Singleton instance
user_service = UserService()
