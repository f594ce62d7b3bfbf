"""Authentication routes"""

from fastapi import APIRouter, BackgroundTasks, Depends, status, Request
from sqlalchemy.orm import Session
from typing import List

from internship_auth.core.database import get_db
from internship_auth.config import settings
from internship_auth.core.exceptions import AuthorizationError
from internship_auth.schemas.user import (
    UserRole,
    UserCreate,
    UserLogin,
    TokenResponse,
    UserResponse,
    RefreshTokenRequest,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    SessionResponse,
)
from internship_auth.schemas.response import APIResponse
from internship_auth.services.auth_service import SessionClaims, auth_service
from internship_auth.services.rate_limiter import rate_limiter
from internship_auth.api.deps import client_ip, get_session_claims

router = APIRouter()


def _token_response(user, access_token: str, refresh_token: str) -> TokenResponse:
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserCreate,
    db: Session = Depends(get_db)
):
    """
    Register a new account

    Self-service sign-ups are always students; other roles are granted by
    an admin.

    Args:
        user_data: Name, email and password
        db: Database session

    Returns:
        Created user
    """
    if user_data.role != UserRole.STUDENT:
        raise AuthorizationError("Only student accounts can be self-registered")
    user = auth_service.register(db, user_data)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
def login(
    credentials: UserLogin,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Login endpoint - verify credentials and open a session

    Args:
        credentials: Email and password
        db: Database session

    Returns:
        Access/refresh token pair and user info
    """
    ip = client_ip(request)
    user_key = credentials.email.strip().lower()
    rate_limiter.enforce(
        f"login:min:{ip}:{user_key}", settings.LOGIN_RATE_LIMIT_PER_MINUTE, 60,
        "Too many login attempts. Please wait a minute.",
    )
    rate_limiter.enforce(
        f"login:hour:{ip}:{user_key}", settings.LOGIN_RATE_LIMIT_PER_HOUR, 3600,
        "Too many login attempts. Please try again later.",
    )

    user, _session, access_token, refresh_token = auth_service.login(
        db,
        credentials.email,
        credentials.password,
        user_agent=request.headers.get("user-agent"),
        ip_address=ip,
    )
    return _token_response(user, access_token, refresh_token)


@router.post("/refresh", response_model=TokenResponse)
def refresh_token(
    req: RefreshTokenRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Rotate a refresh token

    The presented refresh token is invalid afterwards; presenting it again
    revokes the whole session.
    """
    ip = client_ip(request)
    rate_limiter.enforce(
        f"refresh:min:{ip}", settings.RATE_LIMIT_PER_MINUTE, 60, "Too many refresh attempts. Slow down."
    )
    rate_limiter.enforce(
        f"refresh:hour:{ip}", settings.RATE_LIMIT_PER_HOUR, 3600, "Too many refresh attempts. Try later."
    )

    user, access_token, refresh_token_value = auth_service.refresh(db, req.refresh_token, ip_address=ip)
    return _token_response(user, access_token, refresh_token_value)


@router.post("/logout", response_model=APIResponse)
def logout(
    request: Request,
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db)
):
    """Revoke the caller's current session"""
    auth_service.logout(db, claims.session_id, ip_address=client_ip(request))
    return APIResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=APIResponse)
def logout_all(
    request: Request,
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db)
):
    """Revoke every session of the caller, including the current one"""
    count = auth_service.logout_all(db, claims.user_id, ip_address=client_ip(request))
    return APIResponse(message="Logged out of all sessions", data={"revoked_sessions": count})


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db)
):
    """Get current user information"""
    return UserResponse.model_validate(auth_service.get_profile(db, claims.user_id))


@router.get("/sessions", response_model=List[SessionResponse])
def list_my_sessions(
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db)
):
    """List the caller's live sessions"""
    sessions = auth_service.list_sessions(db, claims.user_id)
    return [
        SessionResponse.model_validate(record).model_copy(update={"current": record.id == claims.session_id})
        for record in sessions
    ]


@router.post("/forgot-password", response_model=APIResponse)
def forgot_password(
    req: ForgotPasswordRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    """
    Request a password reset email

    The response is identical whether or not the account exists; the email
    itself is sent after the response.
    """
    window = settings.PASSWORD_RATE_LIMIT_WINDOW_SECONDS
    message = "Too many password reset requests. Please try again later."
    rate_limiter.enforce(f"forgot:{client_ip(request)}", settings.FORGOT_PASSWORD_RATE_LIMIT, window, message)
    rate_limiter.enforce(f"forgot:{req.email.lower()}", settings.FORGOT_PASSWORD_RATE_LIMIT, window, message)

    return APIResponse(message=auth_service.request_password_reset(db, req.email, background_tasks))


@router.post("/reset-password", response_model=APIResponse)
def reset_password(
    req: ResetPasswordRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """Redeem a reset token; signs the account out everywhere"""
    ip = client_ip(request)
    rate_limiter.enforce(
        f"reset:{ip}", settings.RESET_PASSWORD_RATE_LIMIT, settings.PASSWORD_RATE_LIMIT_WINDOW_SECONDS,
        "Too many password reset attempts. Please try again later.",
    )
    auth_service.redeem_password_reset(db, req.token, req.new_password, ip_address=ip)
    return APIResponse(message="Password has been reset. Please log in again.")


@router.put("/change-password", response_model=APIResponse)
def change_password(
    req: ChangePasswordRequest,
    request: Request,
    claims: SessionClaims = Depends(get_session_claims),
    db: Session = Depends(get_db)
):
    """Change password; other sessions are signed out, this one stays"""
    revoked = auth_service.change_password(
        db, claims, req.current_password, req.new_password, ip_address=client_ip(request)
    )
    return APIResponse(message="Password updated successfully", data={"revoked_sessions": revoked})
