from datetime import datetime, timedelta

import pytest
from jose import jwt

from internship_auth.config import settings
from internship_auth.core.exceptions import TokenExpiredError, TokenInvalidError, ValidationError
from internship_auth.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    hash_token,
    password_policy_errors,
    token_hash_matches,
    validate_password_strength,
    verify_password,
)


def test_access_token_round_trip():
    token = create_access_token("7", "42", "trainer")
    payload = decode_token(token, expected_type="access")
    assert payload["sub"] == "7"
    assert payload["sid"] == "42"
    assert payload["role"] == "trainer"
    assert payload["typ"] == "access"
    assert payload["iss"] == settings.JWT_ISSUER
    assert payload["aud"] == settings.JWT_AUDIENCE


def test_refresh_token_carries_session_but_no_role():
    payload = decode_token(create_refresh_token("9", "3"), expected_type="refresh")
    assert payload["sid"] == "3"
    assert payload["typ"] == "refresh"
    assert "role" not in payload


def test_access_decode_rejects_refresh_typ():
    refresh = create_refresh_token("1", "1")
    with pytest.raises(TokenInvalidError):
        decode_token(refresh, expected_type="access")


def test_tokens_minted_together_differ():
    assert create_refresh_token("1", "1") != create_refresh_token("1", "1")


def test_expired_token_reports_expiry():
    token = create_access_token("1", "1", "student", expires_delta=timedelta(seconds=-10))
    with pytest.raises(TokenExpiredError):
        decode_token(token)


def test_tampered_token_is_invalid():
    token = create_access_token("1", "1", "student")
    header, body, signature = token.split(".")
    tampered = ".".join([header, body, signature[:-2] + ("AA" if signature[-2:] != "AA" else "BB")])
    with pytest.raises(TokenInvalidError):
        decode_token(tampered)


def test_token_signed_with_other_secret_is_invalid():
    now = datetime.utcnow()
    forged = jwt.encode(
        {
            "sub": "1", "sid": "1", "typ": "access", "role": "admin",
            "iss": settings.JWT_ISSUER, "aud": settings.JWT_AUDIENCE,
            "iat": now, "exp": now + timedelta(minutes=5),
        },
        "not-the-server-secret",
        algorithm=settings.ALGORITHM,
    )
    with pytest.raises(TokenInvalidError):
        decode_token(forged)


def test_token_for_other_audience_is_invalid():
    now = datetime.utcnow()
    token = jwt.encode(
        {
            "sub": "1", "sid": "1", "typ": "access",
            "iss": settings.JWT_ISSUER, "aud": "some-other-service",
            "iat": now, "exp": now + timedelta(minutes=5),
        },
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    with pytest.raises(TokenInvalidError):
        decode_token(token)


def test_token_without_session_id_is_invalid():
    now = datetime.utcnow()
    token = jwt.encode(
        {
            "sub": "1", "typ": "refresh",
            "iss": settings.JWT_ISSUER, "aud": settings.JWT_AUDIENCE,
            "iat": now, "exp": now + timedelta(minutes=5),
        },
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    with pytest.raises(TokenInvalidError):
        decode_token(token)


@pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c"])
def test_garbage_is_invalid(garbage):
    with pytest.raises(TokenInvalidError):
        decode_token(garbage)


def test_token_hash_is_sha256_hex():
    digest = hash_token("abc")
    assert digest == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    assert token_hash_matches("abc", digest)
    assert not token_hash_matches("abd", digest)
    assert not token_hash_matches("abc", None)


def test_password_hash_verifies_only_original():
    hashed = get_password_hash("Secret123")
    assert hashed != "Secret123"
    assert verify_password("Secret123", hashed)
    assert not verify_password("secret123", hashed)


def test_verify_password_with_malformed_hash_is_false():
    assert verify_password("Secret123", "not-a-bcrypt-hash") is False


def test_password_policy():
    assert password_policy_errors("Secret123") == []
    assert len(password_policy_errors("short")) >= 2
    with pytest.raises(ValidationError) as exc:
        validate_password_strength("alllowercase1")
    assert exc.value.details["password"] == ["Password must contain at least one uppercase letter"]
