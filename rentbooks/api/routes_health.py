from __future__ import annotations

import time
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rentbooks.db.session import get_db

router = APIRouter(tags=["health"])

# Tables the tax engine cannot work without
REQUIRED_TABLES = ("property", "ledger_transaction", "tax_setting", "tax_projection")


def _missing_tables(db: Session) -> list[str]:
    db.execute(text("SELECT 1"))
    existing = set(inspect(db.get_bind()).get_table_names())
    return [name for name in REQUIRED_TABLES if name not in existing]


@router.get("/health")
async def health(db: Annotated[Session, Depends(get_db)]) -> dict[str, object]:
    """Readiness probe: the database answers and the ledger/tax schema is migrated."""
    start = time.perf_counter()
    try:
        missing = _missing_tables(db)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=503, detail="Database connectivity check failed") from exc
    if missing:
        raise HTTPException(status_code=503, detail=f"Schema not migrated, missing: {', '.join(missing)}")
    return {
        "status": "ok",
        "db": True,
        "tables": len(REQUIRED_TABLES),
        "latency_ms": int((time.perf_counter() - start) * 1000),
    }


@router.get("/live")
async def live() -> dict[str, str]:
    return {"status": "alive"}
