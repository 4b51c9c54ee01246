"""
Pytest fixtures for API tests.

The app runs against an in-memory SQLite database, a temporary local storage
directory and a pinned clock, so every test is isolated and deterministic.
"""
import os
import tempfile
from datetime import datetime, timezone
from decimal import Decimal

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ["LOCAL_STORAGE_DIR"] = tempfile.mkdtemp(prefix="centrehub-test-")
os.environ.pop("AZURE_BLOB_CONNECTION", None)
os.environ.pop("WHATSAPP_GROUP_URL", None)

import pytest
import pytz
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from centrehub.auth.security import create_access_token, get_password_hash
from centrehub.db import Base, get_db
from centrehub.main import app as fastapi_app
from centrehub.models.models import Expense, InventoryItem, User
from centrehub.services.time_rules import get_now


IST = pytz.timezone("Asia/Kolkata")
NOW = IST.localize(datetime(2025, 3, 15, 12, 0))
PASSWORD = "centre-pass-123"


# =============================================================================
# DATABASE / APP
# =============================================================================

@pytest.fixture(scope="session")
def engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )


@pytest.fixture
def db(engine):
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    """Mutable pinned clock; tests may set clock["now"]."""
    return {"now": NOW}


@pytest.fixture
def client(db, clock):
    def _get_db():
        yield db

    fastapi_app.dependency_overrides[get_db] = _get_db
    fastapi_app.dependency_overrides[get_now] = lambda: clock["now"]
    try:
        yield TestClient(fastapi_app)
    finally:
        fastapi_app.dependency_overrides.clear()


# =============================================================================
# USERS
# =============================================================================

def _user(db, email, role, centre=None):
    user = User(email=email, password_hash=get_password_hash(PASSWORD), role=role, centre=centre)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    return _user(db, "admin@aaryavart.org", "admin")


@pytest.fixture
def lucknow_staff(db):
    return _user(db, "lucknow@aaryavart.org", "staff", "Lucknow")


@pytest.fixture
def gorakhpur_staff(db):
    return _user(db, "gorakhpur@aaryavart.org", "staff", "Gorakhpur")


def auth_headers(user):
    token = create_access_token(str(user.id), role=user.role, centre=user.centre)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def lucknow_headers(lucknow_staff):
    return auth_headers(lucknow_staff)


@pytest.fixture
def gorakhpur_headers(gorakhpur_staff):
    return auth_headers(gorakhpur_staff)


# =============================================================================
# RECORDS
# =============================================================================

@pytest.fixture
def add_expense(db):
    """Insert an expense directly; `when` is a local (IST) naive datetime."""
    def _add(amount, centre="Lucknow", category="Kitchen", item="Milk", created_by="lucknow@aaryavart.org", when=None, note=None):
        local = IST.localize(when) if when else NOW
        row = Expense(
            amount=Decimal(str(amount)),
            category=category,
            item=item,
            centre=centre,
            payment_method="cash",
            timestamp=local.astimezone(timezone.utc),
            date=local.date(),
            created_by=created_by,
            note=note,
            attachments=[],
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
    return _add


@pytest.fixture
def add_item(db):
    def _add(name, quantity, centre="Lucknow", original_quantity=None, item_type="Stock", status="Available"):
        row = InventoryItem(
            item_name=name,
            category="Kitchen",
            centre=centre,
            quantity=quantity,
            original_quantity=original_quantity,
            item_type=item_type,
            status=status,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
    return _add
