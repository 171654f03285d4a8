from __future__ import annotations

import os
import tempfile
from datetime import date

# Settings and the audit log path are read at import time
os.environ["APP_ENV"] = "test"
os.environ.setdefault("AUDIT_LOG_FILE", os.path.join(tempfile.gettempdir(), "rentbooks-test-audit.log"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from rentbooks.core.security import create_access_token  # noqa: E402
from rentbooks.db import session as db_session_module  # noqa: E402
from rentbooks.db.base_class import Base  # noqa: E402
from rentbooks.db.session import SessionLocal, get_db  # noqa: E402
from rentbooks.models.ledger_models import LedgerTransaction, Property, TransactionType  # noqa: E402
from rentbooks.models import tax_models  # noqa: E402,F401  (register tax tables)
from rentbooks.utils.money import Money  # noqa: E402

test_engine = db_session_module.engine


@pytest.fixture(autouse=True)
def _reset_database_state():
    """Ensure each test sees a fresh database schema."""
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield


@pytest.fixture
def db_session():
    """Provide a database session for tests."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


@pytest.fixture
def user_id() -> int:
    return 1


@pytest.fixture
def make_property(db_session, user_id):
    """Factory creating committed properties for the test user."""

    def _make(name: str, owner: int | None = None) -> Property:
        prop = Property(user_id=owner or user_id, name=name, currency="BRL")
        db_session.add(prop)
        db_session.commit()
        db_session.refresh(prop)
        return prop

    return _make


@pytest.fixture
def add_revenue(db_session, user_id):
    """Insert revenue rows straight into the ledger (no recalculation hook)."""

    def _add(amount: str, on: date, prop: Property | None = None, owner: int | None = None) -> LedgerTransaction:
        tx = LedgerTransaction(
            user_id=owner or user_id,
            property_id=prop.id if prop else None,
            type=TransactionType.REVENUE.value,
            category="rent",
            amount=Money.from_decimal(amount),
            date=on,
            description="Aluguel",
            is_composite_parent=False,
        )
        db_session.add(tx)
        db_session.commit()
        return tx

    return _add


@pytest.fixture
def client():
    """Provide a FastAPI TestClient bound to the application."""
    from rentbooks.api.main import app

    def _override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(user_id) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user_id))}"}
