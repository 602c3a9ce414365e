"""
Tests for security helpers.
"""
from datetime import timedelta

from cafirm.core.security import (
    create_access_token,
    generate_otp,
    generate_reset_token,
    generate_temporary_password,
    get_password_hash,
    is_token_expired,
    mask_email,
    verify_password,
    verify_token,
)


def test_password_hashing():
    hashed = get_password_hash("Ledger@2025")
    assert hashed != "Ledger@2025"
    assert verify_password("Ledger@2025", hashed)
    assert not verify_password("ledger@2025", hashed)


def test_access_token_round_trip():
    token = create_access_token("abc", additional_claims={"role": "admin", "firm_id": "f1"})
    payload = verify_token(token)
    assert payload["sub"] == "abc"
    assert payload["role"] == "admin"
    assert payload["firm_id"] == "f1"
    assert not is_token_expired(token)


def test_expired_token():
    token = create_access_token("abc", expires_delta=timedelta(seconds=-5))
    assert verify_token(token) is None
    assert is_token_expired(token)


def test_tampered_token():
    token = create_access_token("abc")
    assert verify_token(token[:-2] + "xx") is None
    assert not is_token_expired("garbage")


def test_one_time_codes():
    otp = generate_otp()
    assert len(otp) == 6 and otp.isdigit()
    assert len(generate_reset_token()) == 64


def test_temporary_password_mixes_character_classes():
    for _ in range(20):
        password = generate_temporary_password()
        assert len(password) == 12
        assert any(c.isupper() for c in password)
        assert any(c.islower() for c in password)
        assert any(c.isdigit() for c in password)


def test_mask_email():
    assert mask_email("anita.desai@sharmaca.in") == "an***@sharmaca.in"
    assert mask_email("a@b.in") == "a***@b.in"
    assert mask_email("not-an-email") == "not-an-email"
