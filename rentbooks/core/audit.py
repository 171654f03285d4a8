"""Audit trail for changes that alter what an owner owes or has paid.

Tax setting versions, projection overrides, confirmations and ledger
deletions are appended as one JSON object per line to ``AUDIT_LOG_FILE``
and echoed on the ``audit`` logger so aggregators see them too.
"""
from __future__ import annotations

import json
import logging
import os
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

from rentbooks.utils.money import Money

_AUDIT_LOG_PATH = Path(os.getenv("AUDIT_LOG_FILE", "storage/audit.log"))
_logger = logging.getLogger("audit")


def _encode(value: Any) -> Any:
    if isinstance(value, Money):
        return value.to_decimal_string()
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def log_audit_event(action: str, user_id: int | None = None, status: str = "success", **metadata: Any) -> None:
    """Record an audit event.

    Parameters:
        action: Dotted action key, e.g. 'tax.projection.confirm'.
        user_id: Owner of the books being changed.
        status: 'success' or 'failure'.
        **metadata: Ids, amounts and reference months involved.
    """
    record = {
        "at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "action": action,
        "user_id": user_id,
        "status": status,
        **metadata,
    }
    line = json.dumps(record, separators=(",", ":"), default=_encode)
    try:
        _AUDIT_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
        with _AUDIT_LOG_PATH.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")
    except OSError as exc:
        _logger.warning("Audit file %s not writable (%s)", _AUDIT_LOG_PATH, exc)
    _logger.info(line)


def log_failure(action: str, user_id: int | None = None, error: str | None = None, **extra: Any) -> None:
    log_audit_event(action, user_id=user_id, status="failure", error=error, **extra)
