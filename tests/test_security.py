from datetime import datetime, timedelta, timezone

import pytest

from app.utils.errors import TokenExpired, TokenInvalid
from app.utils.security import (
    create_access_token,
    create_reset_token,
    decode_access_token,
    decode_token,
    hash_password,
    password_fingerprint,
    session_expired,
    unverified_issued_at,
    verify_password,
)

ISSUED = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_session_lifetime_boundary():
    assert not session_expired(ISSUED, ISSUED + timedelta(minutes=29, seconds=59))
    assert session_expired(ISSUED, ISSUED + timedelta(minutes=30))
    assert session_expired(ISSUED, ISSUED + timedelta(minutes=30, seconds=1))


def test_access_token_valid_just_before_expiry():
    token = create_access_token({"sub": "a@example.com", "user_id": 1}, now=ISSUED)

    payload = decode_access_token(token, now=ISSUED + timedelta(minutes=29, seconds=59))

    assert payload["user_id"] == 1
    assert payload["type"] == "access"


def test_access_token_rejected_just_after_expiry():
    token = create_access_token({"sub": "a@example.com", "user_id": 1}, now=ISSUED)

    with pytest.raises(TokenExpired):
        decode_access_token(token, now=ISSUED + timedelta(minutes=30, seconds=1))


def test_decode_token_reports_expiry_from_exp_claim():
    token = create_reset_token(1, hash_password("Password123!"), now=ISSUED)

    with pytest.raises(TokenExpired):
        decode_token(token, now=ISSUED + timedelta(hours=1))
    assert decode_token(token, now=ISSUED + timedelta(minutes=59))["purpose"] == "password_reset"


def test_tampered_token_is_invalid_not_expired():
    token = create_access_token({"sub": "a@example.com", "user_id": 1}, now=ISSUED)
    header, payload, signature = token.split(".")
    tampered = ".".join([header, payload, signature[::-1]])

    with pytest.raises(TokenInvalid):
        decode_token(tampered, now=ISSUED)


def test_garbage_token_is_invalid():
    with pytest.raises(TokenInvalid):
        decode_token("not-a-jwt")


def test_reset_token_is_not_an_access_token():
    token = create_reset_token(1, hash_password("Password123!"), now=ISSUED)

    with pytest.raises(TokenInvalid):
        decode_access_token(token, now=ISSUED)


def test_password_fingerprint_follows_hash():
    first = hash_password("Password123!")
    second = hash_password("Password123!")

    assert password_fingerprint(first) == password_fingerprint(first)
    assert password_fingerprint(first) != password_fingerprint(second)


def test_password_hashing_truncates_at_bcrypt_limit():
    long_password = "p" * 80
    hashed = hash_password(long_password)

    assert verify_password(long_password, hashed)
    assert verify_password("p" * 72, hashed)


def test_unverified_issued_at_reads_claim():
    token = create_access_token({"sub": "a@example.com", "user_id": 1}, now=ISSUED)

    assert unverified_issued_at(token) == ISSUED
    assert unverified_issued_at("garbage") is None
