"""
Unit tests for access token issue / verify
"""
import jwt

from crewmate.config import get_settings
from crewmate.core.jwt import create_access_token, decode_token


def test_token_round_trip_carries_user_id():
    payload = decode_token(create_access_token(42))

    assert payload["sub"] == "42"
    assert payload["exp"] > payload["iat"]


def test_expired_token_rejected():
    token = create_access_token(42, expires_minutes=-5)

    assert decode_token(token) is None


def test_foreign_signature_rejected():
    security = get_settings().security
    token = jwt.encode({"sub": "42"}, "not-the-secret", algorithm=security.jwt_algorithm)

    assert decode_token(token) is None
    assert decode_token("garbage") is None
