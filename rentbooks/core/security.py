"""Bearer tokens identifying the owner whose books a request reads or writes."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from jwt import ExpiredSignatureError
from jwt import InvalidTokenError as PyJWTInvalidTokenError

from rentbooks.core.config import settings

ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
_REQUIRED_CLAIMS = ["sub", "exp", "iss"]


class TokenValidationError(Exception):
    """Raised when a token cannot be validated."""


class TokenExpiredError(TokenValidationError):
    """Raised when a token is expired."""


def token_issuer() -> str:
    return settings.APP_NAME.lower()


def create_access_token(subject: str | int, expires_minutes: int = 60 * 24) -> str:
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": str(subject),
        "iss": token_issuer(),
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=expires_minutes),
        "type": ACCESS_TOKEN_TYPE,
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    """Verify signature, expiry and issuer of an access token and return its claims."""
    try:
        claims = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[ALGORITHM],
            issuer=token_issuer(),
            options={"require": _REQUIRED_CLAIMS},
        )
    except ExpiredSignatureError as exc:
        raise TokenExpiredError("Token has expired") from exc
    except PyJWTInvalidTokenError as exc:
        raise TokenValidationError(f"Token is invalid: {exc}") from exc
    if claims.get("type") != ACCESS_TOKEN_TYPE:
        raise TokenValidationError("Not an access token")
    return claims


def owner_id_from_token(token: str) -> int:
    claims = decode_token(token)
    try:
        owner_id = int(claims["sub"])
    except ValueError as exc:
        raise TokenValidationError("Token subject is not an owner id") from exc
    if owner_id <= 0:
        raise TokenValidationError("Token subject is not an owner id")
    return owner_id
