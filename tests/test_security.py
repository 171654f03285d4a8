"""Tests for security module: bearer token handling."""
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from rentbooks.core.config import settings
from rentbooks.core.security import (
    ALGORITHM,
    TokenExpiredError,
    TokenValidationError,
    create_access_token,
    decode_token,
    owner_id_from_token,
    token_issuer,
)


def _encode(**claims):
    now = datetime.now(timezone.utc)
    base = {"sub": "42", "iss": token_issuer(), "iat": now, "exp": now + timedelta(minutes=5), "type": "access"}
    return jwt.encode({**base, **claims}, settings.JWT_SECRET, algorithm=ALGORITHM)


class TestTokens:
    def test_round_trip_subject(self):
        token = create_access_token(42)
        payload = decode_token(token)
        assert payload["sub"] == "42"
        assert payload["type"] == "access"
        assert payload["iss"] == settings.APP_NAME.lower()
        assert owner_id_from_token(token) == 42

    def test_expired_token(self):
        token = create_access_token("42", expires_minutes=-1)
        with pytest.raises(TokenExpiredError):
            decode_token(token)

    def test_tampered_token(self):
        token = create_access_token("42")
        with pytest.raises(TokenValidationError):
            decode_token(token[:-2] + "xx")

    def test_wrong_token_type(self):
        with pytest.raises(TokenValidationError):
            decode_token(_encode(type="refresh"))

    def test_foreign_issuer(self):
        with pytest.raises(TokenValidationError):
            decode_token(_encode(iss="someone-else"))

    @pytest.mark.parametrize("subject", ["abc", "0", "-3"])
    def test_subject_must_be_owner_id(self, subject):
        with pytest.raises(TokenValidationError):
            owner_id_from_token(_encode(sub=subject))


def test_expired_token_is_rejected_by_api(client):
    token = create_access_token("1", expires_minutes=-1)
    resp = client.get("/tax/projections", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expired"


def test_garbage_token_is_rejected_by_api(client):
    resp = client.get("/tax/projections", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token"
