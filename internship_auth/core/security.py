"""Security utilities - JWT codec, password hashing, token digests"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List
from jose import ExpiredSignatureError, JWTError, jwt
import bcrypt
import hashlib
import hmac
import re
import secrets

from internship_auth.config import settings
from internship_auth.core.exceptions import TokenExpiredError, TokenInvalidError, ValidationError

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# bcrypt only considers the first 72 bytes of input
_BCRYPT_MAX_BYTES = 72
_SPECIAL_CHARS = re.compile(r'[!@#$%^&*(),.?":{}|<>]')

_dummy_password_hash: Optional[str] = None


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation used for every stored datetime"""
    return datetime.utcnow()


def naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalize a (possibly tz-aware) datetime read back from the database"""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password

    Returns:
        bool: True if password matches
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        # Malformed stored hash or over-long input
        return False


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password

    Returns:
        str: Hashed password
    """
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    ).decode('utf-8')


def burn_password_check(password: str) -> None:
    """Spend the same bcrypt work as a real compare when no user matched."""
    global _dummy_password_hash
    if _dummy_password_hash is None:
        _dummy_password_hash = get_password_hash(secrets.token_urlsafe(16))
    verify_password(password, _dummy_password_hash)


def password_policy_errors(password: str) -> List[str]:
    """Return the list of password policy violations (empty when valid)."""
    errors = []

    if len(password) < settings.PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters long")
    if len(password.encode('utf-8')) > _BCRYPT_MAX_BYTES:
        errors.append(f"Password must be at most {_BCRYPT_MAX_BYTES} bytes long")
    if settings.PASSWORD_REQUIRE_UPPERCASE and not re.search(r'[A-Z]', password):
        errors.append("Password must contain at least one uppercase letter")
    if settings.PASSWORD_REQUIRE_LOWERCASE and not re.search(r'[a-z]', password):
        errors.append("Password must contain at least one lowercase letter")
    if settings.PASSWORD_REQUIRE_NUMBERS and not re.search(r'\d', password):
        errors.append("Password must contain at least one number")
    if settings.PASSWORD_REQUIRE_SPECIAL_CHARS and not _SPECIAL_CHARS.search(password):
        errors.append("Password must contain at least one special character")

    return errors


def validate_password_strength(password: str) -> None:
    """Raise ValidationError when the password does not meet the policy."""
    errors = password_policy_errors(password)
    if errors:
        raise ValidationError("Password does not meet requirements", details={"password": errors})


def _encode(claims: Dict[str, Any], expires_delta: timedelta) -> str:
    now = utcnow()
    to_encode = claims.copy()
    to_encode.update({
        "exp": now + expires_delta,
        "iat": now,
        "jti": secrets.token_urlsafe(16),  # Unique token ID
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
    })
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(
    subject: str,
    session_id: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a short-lived access token bound to a session

    Args:
        subject: User ID
        session_id: Session the token belongs to
        role: User role (authorization hint only)
        expires_delta: Token lifetime override

    Returns:
        str: Encoded JWT token
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode(
        {"sub": str(subject), "sid": str(session_id), "role": role, "typ": ACCESS_TOKEN_TYPE},
        expires_delta,
    )


def create_refresh_token(
    subject: str,
    session_id: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a long-lived refresh token bound to a session

    Args:
        subject: User ID
        session_id: Session the token belongs to
        expires_delta: Token lifetime override

    Returns:
        str: Encoded JWT token
    """
    if expires_delta is None:
        expires_delta = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode(
        {"sub": str(subject), "sid": str(session_id), "typ": REFRESH_TOKEN_TYPE},
        expires_delta,
    )


def decode_token(token: str, expected_type: Optional[str] = None) -> Dict[str, Any]:
    """
    Decode and verify a JWT token

    Only the token itself is checked; whether its session is still valid is
    up to the caller.

    Args:
        token: JWT token string
        expected_type: Required "typ" claim, if any

    Returns:
        Dict: Decoded claims

    Raises:
        TokenExpiredError: Signature valid but token past expiry
        TokenInvalidError: Bad signature, issuer, audience, type or shape
    """
    if not token or not isinstance(token, str):
        raise TokenInvalidError()

    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError:
        raise TokenInvalidError()

    if not payload.get("sub") or not payload.get("sid") or not payload.get("typ"):
        raise TokenInvalidError("Malformed token")
    if expected_type and payload["typ"] != expected_type:
        raise TokenInvalidError(f"Expected {expected_type} token")

    return payload


def hash_token(token: str) -> str:
    """SHA-256 hex digest used to store refresh and reset secrets."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def token_hash_matches(token: str, stored_hash: Optional[str]) -> bool:
    """Constant-time comparison of a presented secret against a stored digest."""
    if not stored_hash:
        return False
    return hmac.compare_digest(hash_token(token), stored_hash)


def generate_reset_secret() -> str:
    """
    Generate a high-entropy password reset secret

    Returns:
        str: 64 hex characters (32 random bytes)
    """
    return secrets.token_hex(32)
