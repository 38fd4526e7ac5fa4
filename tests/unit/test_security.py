import jwt
import pytest
from fastapi import HTTPException

from workpilot.config import JWT_ALGORITHM, JWT_SECRET_KEY
from workpilot.core.security import (
    ACCESS_TOKEN_TYPE, REFRESH_TOKEN_TYPE, create_access_token, create_refresh_token, decode_token,
    hash_password, verify_password,
)


def test_password_hash_round_trip():
    hashed = hash_password("password123")
    assert hashed != "password123"
    assert verify_password("password123", hashed)
    assert not verify_password("password124", hashed)


def test_access_token_claims():
    payload = decode_token(create_access_token(7, "a@example.com", token_version=3), ACCESS_TOKEN_TYPE)
    assert payload["sub"] == "7"
    assert payload["email"] == "a@example.com"
    assert payload["ver"] == 3
    assert payload["type"] == ACCESS_TOKEN_TYPE


def test_refresh_token_is_not_an_access_token():
    token = create_refresh_token(7, "a@example.com")
    assert decode_token(token, REFRESH_TOKEN_TYPE)["sub"] == "7"
    with pytest.raises(HTTPException) as exc_info:
        decode_token(token, ACCESS_TOKEN_TYPE)
    assert exc_info.value.status_code == 401


def test_expired_token_is_rejected():
    token = create_access_token(7, "a@example.com", expires_minutes=-1)
    with pytest.raises(HTTPException) as exc_info:
        decode_token(token, ACCESS_TOKEN_TYPE)
    assert exc_info.value.detail == "Token expired"


def test_token_signed_with_other_key_is_rejected():
    token = jwt.encode({"sub": "7", "type": ACCESS_TOKEN_TYPE}, "some-other-signing-key-of-decent-length", algorithm=JWT_ALGORITHM)
    with pytest.raises(HTTPException):
        decode_token(token, ACCESS_TOKEN_TYPE)


def test_non_numeric_subject_is_rejected():
    token = jwt.encode({"sub": "admin", "type": ACCESS_TOKEN_TYPE}, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)
    with pytest.raises(HTTPException):
        decode_token(token, ACCESS_TOKEN_TYPE)
