"""Common dependencies: database session and the authenticated owner."""
from typing import Annotated, TypeAlias

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from rentbooks.core.audit import log_failure
from rentbooks.core.security import TokenExpiredError, TokenValidationError, owner_id_from_token
from rentbooks.db.session import get_db


def get_current_user_id(authorization: str = Header(None)) -> int:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        log_failure("auth.token.parse", error="missing_token")
        raise HTTPException(status_code=401, detail="Missing token")
    try:
        return owner_id_from_token(token.strip())
    except TokenExpiredError as exc:
        log_failure("auth.token.expired", error="expired")
        raise HTTPException(status_code=401, detail="Token expired") from exc
    except TokenValidationError as exc:
        log_failure("auth.token.invalid", error=str(exc))
        raise HTTPException(status_code=401, detail="Invalid token") from exc


CurrentUserDep: TypeAlias = Annotated[int, Depends(get_current_user_id)]
DbDep: TypeAlias = Annotated[Session, Depends(get_db)]
