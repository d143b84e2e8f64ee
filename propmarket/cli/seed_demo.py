from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..db import init_db, session_scope
from ..domain.roles import ADMIN, CUSTOMER, PROMOTER
from ..models import User
from ..repos.sql import SqlStore
from ..services import listing_service
from ..services.auth_service import AuthenticatedUser, hash_password

SAMPLE_LISTINGS = (
    {
        "title": "3BHK apartment near metro",
        "property_type": "APARTMENT",
        "price_type": "NEGOTIABLE",
        "total_price": 8_500_000,
        "total_area": 1450,
        "city": "Hyderabad",
        "locality": "Kondapur",
        "bedrooms": 3,
        "bathrooms": 2,
        "furnishing": "SEMI_FURNISHED",
        "amenities": ["LIFT", "PARKING", "GYM"],
    },
    {
        "title": "East-facing residential plot",
        "property_type": "PLOT",
        "price_type": "FIXED",
        "total_price": 5_000_000,
        "total_area": 1000,
        "city": "Hyderabad",
        "locality": "Shamshabad",
    },
    {
        "title": "Independent villa with garden",
        "property_type": "VILLA",
        "price_type": "FIXED",
        "total_price": 21_000_000,
        "total_area": 3200,
        "city": "Bengaluru",
        "locality": "Whitefield",
        "bedrooms": 4,
        "bathrooms": 4,
        "furnishing": "FURNISHED",
    },
)


@dataclass(frozen=True)
class SeedResult:
    admin_email: str
    promoter_email: str
    customer_email: str
    listing_ids: list[int]
    live_ids: list[int]


def _get_or_create_user(store: SqlStore, *, email: str, password: str, role: str, full_name: str, phone: str) -> User:
    row = store.users.get_by_email(email)
    if row:
        return row
    row = User(
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_verified=True,
        phone_e164=phone,
        full_name=full_name,
        created_at=datetime.utcnow(),
    )
    store.users.add(row)
    store.commit()
    return row


def seed_demo(*, password: str = "demo1234", approve: int = 2) -> SeedResult:
    """Idempotent for users; every run adds a fresh batch of sample listings."""
    init_db()

    with session_scope() as db:
        store = SqlStore(db)
        admin = _get_or_create_user(
            store, email="admin@demo.local", password=password, role=ADMIN, full_name="Admin", phone="+919800000001"
        )
        promoter = _get_or_create_user(
            store, email="promoter@demo.local", password=password, role=PROMOTER, full_name="Promoter", phone="+919876543210"
        )
        customer = _get_or_create_user(
            store, email="customer@demo.local", password=password, role=CUSTOMER, full_name="Customer", phone="+919811122233"
        )

        as_promoter = AuthenticatedUser(user_id=int(promoter.id), role=PROMOTER, email=promoter.email)
        as_admin = AuthenticatedUser(user_id=int(admin.id), role=ADMIN, email=admin.email)

        ids: list[int] = []
        for data in SAMPLE_LISTINGS:
            row = listing_service.create_listing(store, as_promoter, {**data, "agreement_accepted": True})
            ids.append(int(row.id))

        live = ids[: max(0, int(approve))]
        for listing_id in live:
            listing_service.approve_listing(store, as_admin, listing_id)

        return SeedResult(
            admin_email=admin.email,
            promoter_email=promoter.email,
            customer_email=customer.email,
            listing_ids=ids,
            live_ids=live,
        )
