from __future__ import annotations

import os
import tempfile
import uuid
from datetime import datetime

# Settings are read at import time: configure the environment before touching propmarket.
_TMP = tempfile.mkdtemp(prefix="propmarket-tests-")
os.environ["JWT_SECRET"] = "test-secret-for-propmarket-0123456789abcdef"
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["APP_ENV"] = "local"
os.environ["FREE_UNLOCK_ENABLED"] = "true"
for _k in ("UNLOCK_FEE_INR", "RAZORPAY_KEY_ID", "RAZORPAY_KEY_SECRET", "SEARCH_LIMIT"):
    os.environ.pop(_k, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from propmarket.db import SessionLocal, init_db  # noqa: E402
from propmarket.domain.roles import ADMIN, PROMOTER  # noqa: E402
from propmarket.models import User  # noqa: E402
from propmarket.repos.memory import MemoryStore  # noqa: E402
from propmarket.repos.sql import SqlStore  # noqa: E402
from propmarket.services import listing_service  # noqa: E402
from propmarket.services.auth_service import AuthenticatedUser, issue_token  # noqa: E402

init_db()


def unique_city() -> str:
    return f"City-{uuid.uuid4().hex[:8]}"


def listing_payload(**over) -> dict:
    data = {
        "property_type": "APARTMENT",
        "price_type": "FIXED",
        "total_price": 5_000_000,
        "total_area": 1_000,
        "agreement_accepted": True,
        "title": "Test flat",
        "city": "Hyderabad",
        "bedrooms": 2,
    }
    data.update(over)
    return data


def bearer(user: AuthenticatedUser) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(user_id=user.user_id, role=user.role, email=user.email)}"}


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def store(db):
    return SqlStore(db)


@pytest.fixture
def mem_store():
    return MemoryStore()


@pytest.fixture(params=["sql", "memory"])
def any_store(request, db):
    if request.param == "sql":
        return SqlStore(db)
    return MemoryStore()


@pytest.fixture
def make_user():
    def _make(store, role: str, *, phone: str | None = None, email: str | None = None) -> AuthenticatedUser:
        email = email or f"{role.lower()}-{uuid.uuid4().hex[:10]}@t.local"
        row = User(
            email=email,
            password_hash=None,
            role=role,
            is_verified=True,
            phone_e164=phone,
            full_name=role.title(),
            created_at=datetime.utcnow(),
        )
        store.users.add(row)
        store.commit()
        return AuthenticatedUser(user_id=int(row.id), role=role, email=email)

    return _make


@pytest.fixture
def live_listing(make_user):
    """Factory: a LIVE listing owned by a fresh promoter (phone +919876543210)."""

    def _make(store, **over):
        promoter = make_user(store, PROMOTER, phone="+919876543210")
        admin = make_user(store, ADMIN)
        row = listing_service.create_listing(store, promoter, listing_payload(**over))
        listing_service.approve_listing(store, admin, row.id)
        return row, promoter, admin

    return _make


@pytest.fixture
def client():
    from propmarket.main import create_app

    return TestClient(create_app())
