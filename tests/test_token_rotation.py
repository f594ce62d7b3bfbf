from datetime import timedelta

import pytest

from internship_auth.config import settings
from internship_auth.core.exceptions import (
    InvalidCredentialsError,
    ReuseDetectedError,
    RotationConflictError,
    SessionRevokedError,
    TokenExpiredError,
    TokenInvalidError,
)
from internship_auth.core.security import create_refresh_token, hash_token
from internship_auth.models.session import AuthSession
from internship_auth.schemas.user import UserStatus
from internship_auth.services.audit_service import audit_service
from internship_auth.services.auth_service import auth_service
from internship_auth.services.session_store import session_store

PASSWORD = "Secret123"


def _login(db, email="student@example.com"):
    return auth_service.login(db, email, PASSWORD, user_agent="pytest", ip_address="127.0.0.1")


def test_login_creates_one_live_session_bound_to_refresh_token(db, make_user):
    user = make_user()
    logged_in, record, access, refresh = _login(db)

    assert logged_in.id == user.id
    sessions = db.query(AuthSession).filter(AuthSession.user_id == user.id).all()
    assert len(sessions) == 1
    assert sessions[0].id == record.id
    assert sessions[0].is_revoked is False
    assert sessions[0].refresh_token_hash == hash_token(refresh)
    assert sessions[0].user_agent == "pytest"
    assert logged_in.last_login is not None

    claims = auth_service.get_session_claims(db, access)
    assert claims.user_id == user.id
    assert claims.session_id == record.id
    assert claims.role == "student"


@pytest.mark.parametrize(
    "email,password",
    [
        ("student@example.com", "WrongPass1"),
        ("nobody@example.com", PASSWORD),
    ],
)
def test_login_rejects_bad_credentials_without_creating_session(db, make_user, email, password):
    make_user()
    with pytest.raises(InvalidCredentialsError):
        auth_service.login(db, email, password)
    assert db.query(AuthSession).count() == 0


def test_login_rejects_inactive_account(db, make_user):
    user = make_user()
    user.status = UserStatus.INACTIVE.value
    db.commit()
    with pytest.raises(InvalidCredentialsError):
        _login(db)


def test_login_email_is_case_insensitive(db, make_user):
    make_user()
    user, _, _, _ = auth_service.login(db, "  Student@Example.COM ", PASSWORD)
    assert user.email == "student@example.com"


def test_rotation_then_replay_revokes_session(db, make_user):
    make_user()
    _, record, _, refresh_1 = _login(db)

    _, access_2, refresh_2 = auth_service.refresh(db, refresh_1)
    assert refresh_2 != refresh_1
    assert auth_service.get_session_claims(db, access_2).session_id == record.id

    with pytest.raises(ReuseDetectedError):
        auth_service.refresh(db, refresh_1)
    assert session_store.find_by_id(db, record.id).is_revoked is True

    with pytest.raises(SessionRevokedError):
        auth_service.refresh(db, refresh_2)
    with pytest.raises(SessionRevokedError):
        auth_service.get_session_claims(db, access_2)


def test_replay_is_audited(db, make_user):
    user = make_user()
    _, record, _, refresh_1 = _login(db)
    auth_service.refresh(db, refresh_1)

    with pytest.raises(ReuseDetectedError):
        auth_service.refresh(db, refresh_1, ip_address="203.0.113.9")

    events = audit_service.events_for_user(db, user.id, "refresh_reuse_detected")
    assert len(events) == 1
    assert events[0].target_id == str(record.id)
    assert events[0].ip_address == "203.0.113.9"


def test_each_rotation_invalidates_its_predecessor(db, make_user):
    make_user()
    _, _, _, token = _login(db)
    seen = {token}
    for _ in range(3):
        _, _, token = auth_service.refresh(db, token)
        assert token not in seen
        seen.add(token)


def test_access_token_cannot_be_used_to_refresh(db, make_user):
    make_user()
    _, record, access, _ = _login(db)
    with pytest.raises(TokenInvalidError):
        auth_service.refresh(db, access)
    assert session_store.find_by_id(db, record.id).is_revoked is False


def test_expired_refresh_token_leaves_session_untouched(db, make_user):
    user = make_user()
    _, record, _, refresh = _login(db)
    expired = create_refresh_token(str(user.id), str(record.id), expires_delta=timedelta(seconds=-5))

    with pytest.raises(TokenExpiredError):
        auth_service.refresh(db, expired)

    stored = session_store.find_by_id(db, record.id)
    assert stored.is_revoked is False
    assert stored.refresh_token_hash == hash_token(refresh)


def test_refresh_token_for_unknown_session_is_rejected(db, make_user):
    user = make_user()
    with pytest.raises(SessionRevokedError):
        auth_service.refresh(db, create_refresh_token(str(user.id), "999"))


def test_refresh_token_with_foreign_subject_is_rejected(db, make_user):
    make_user()
    other = make_user(email="other@example.com")
    _, record, _, _ = _login(db)
    with pytest.raises(SessionRevokedError):
        auth_service.refresh(db, create_refresh_token(str(other.id), str(record.id)))


def test_lost_rotation_race_is_a_retryable_conflict(db, make_user, monkeypatch):
    make_user()
    _, record, _, refresh = _login(db)
    original_swap = session_store.swap_refresh_token_hash

    def racing_swap(session, session_id, expected_hash, new_hash):
        # A parallel request with the same token commits its rotation first.
        assert original_swap(session, session_id, expected_hash, hash_token("parallel-winner"))
        session.commit()
        return original_swap(session, session_id, expected_hash, new_hash)

    monkeypatch.setattr(session_store, "swap_refresh_token_hash", racing_swap)

    with pytest.raises(RotationConflictError):
        auth_service.refresh(db, refresh)

    stored = session_store.find_by_id(db, record.id)
    assert stored.is_revoked is False
    assert stored.refresh_token_hash == hash_token("parallel-winner")


def test_grace_window_turns_immediate_retry_into_conflict(db, make_user, monkeypatch):
    monkeypatch.setattr(settings, "REFRESH_REUSE_GRACE_SECONDS", 30)
    make_user()
    _, record, _, refresh_1 = _login(db)
    _, _, refresh_2 = auth_service.refresh(db, refresh_1)

    with pytest.raises(RotationConflictError):
        auth_service.refresh(db, refresh_1)
    assert session_store.find_by_id(db, record.id).is_revoked is False

    # The successor keeps working, and only the immediately prior token is forgiven.
    _, _, refresh_3 = auth_service.refresh(db, refresh_2)
    with pytest.raises(ReuseDetectedError):
        auth_service.refresh(db, refresh_1)
    with pytest.raises(SessionRevokedError):
        auth_service.refresh(db, refresh_3)


def test_refresh_issues_access_token_with_current_role(db, make_user):
    user = make_user()
    _, _, _, refresh = _login(db)
    user.role = "trainer"
    db.commit()

    _, access, _ = auth_service.refresh(db, refresh)
    assert auth_service.get_session_claims(db, access).role == "trainer"


def test_logout_invalidates_unexpired_access_token(db, make_user):
    make_user()
    _, record, access, refresh = _login(db)

    assert auth_service.logout(db, record.id) is True
    assert auth_service.logout(db, record.id) is False

    with pytest.raises(SessionRevokedError):
        auth_service.get_session_claims(db, access)
    with pytest.raises(SessionRevokedError):
        auth_service.refresh(db, refresh)


def test_logout_leaves_other_sessions_alone(db, make_user):
    make_user()
    _, first, _, _ = _login(db)
    _, _, second_access, _ = _login(db)

    auth_service.logout(db, first.id)
    assert auth_service.get_session_claims(db, second_access).session_id != first.id


def test_logout_all_revokes_every_session(db, make_user):
    user = make_user()
    _, _, access_1, _ = _login(db)
    _, _, access_2, _ = _login(db)

    assert auth_service.logout_all(db, user.id) == 2
    for access in (access_1, access_2):
        with pytest.raises(SessionRevokedError):
            auth_service.get_session_claims(db, access)


def test_deactivation_revokes_all_sessions(db, make_user):
    user = make_user()
    admin = make_user(email="admin@example.com", name="Admin", role="admin")
    _, _, access, refresh = _login(db)

    auth_service.set_user_status(db, user.id, UserStatus.INACTIVE, actor_id=admin.id)

    with pytest.raises(SessionRevokedError):
        auth_service.get_session_claims(db, access)
    with pytest.raises(SessionRevokedError):
        auth_service.refresh(db, refresh)
    with pytest.raises(InvalidCredentialsError):
        _login(db)


def test_list_sessions_shows_only_live_sessions(db, make_user):
    user = make_user()
    _, first, _, _ = _login(db)
    _, second, _, _ = _login(db)
    auth_service.logout(db, first.id)

    assert [s.id for s in auth_service.list_sessions(db, user.id)] == [second.id]
