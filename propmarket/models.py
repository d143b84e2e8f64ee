from __future__ import annotations

import json
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


class JsonList(TypeDecorator):
    """
    list[str] stored as JSON text.

    NULL <-> None, otherwise a lossless encode/decode round trip.
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Optional[List[Any]], dialect) -> Optional[str]:
        if value is None:
            return None
        return json.dumps([str(v) for v in value], ensure_ascii=False, separators=(",", ":"))

    def process_result_value(self, value: Optional[str], dialect) -> Optional[List[str]]:
        if value is None:
            return None
        decoded = json.loads(value)
        if not isinstance(decoded, list):
            raise ValueError(f"expected a JSON list, got {type(decoded).__name__}")
        return [str(v) for v in decoded]


# -----------------------------
# Accounts
# -----------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="CUSTOMER")  # CUSTOMER|PROMOTER|ADMIN
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    phone_e164: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


# -----------------------------
# Listings
# -----------------------------
class Listing(Base):
    __tablename__ = "listings"
    __table_args__ = (
        Index("ix_listings_status_created", "status", "created_at"),
        Index("ix_listings_status_ppsf", "status", "price_per_unit_area"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    promoter_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    property_type: Mapped[str] = mapped_column(String(30), nullable=False)
    total_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total_area: Mapped[float] = mapped_column(Float, nullable=False)
    price_per_unit_area: Mapped[float] = mapped_column(Float, nullable=False)
    price_type: Mapped[str] = mapped_column(String(20), nullable=False)  # FIXED|NEGOTIABLE

    title: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True, index=True)
    locality: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    bedrooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bathrooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    furnishing: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    amenities: Mapped[Optional[List[str]]] = mapped_column(JsonList, nullable=True)
    amenities_price: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    image_urls: Mapped[Optional[List[str]]] = mapped_column(JsonList, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING", index=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    reviewed_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    unlock_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    save_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    agreement_accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


# -----------------------------
# Contact unlocks / payments
# -----------------------------
class Unlock(Base):
    __tablename__ = "unlocks"
    __table_args__ = (UniqueConstraint("user_id", "listing_id", name="uq_unlocks_user_listing"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    listing_id: Mapped[int] = mapped_column(Integer, ForeignKey("listings.id"), nullable=False, index=True)

    payment_provider: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)  # FREE|RAZORPAY
    payment_ref: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class PaymentOrder(Base):
    __tablename__ = "payment_orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    provider: Mapped[str] = mapped_column(String(20), nullable=False, default="RAZORPAY")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="CREATED")  # CREATED|PAID|FAILED

    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    listing_id: Mapped[int] = mapped_column(Integer, ForeignKey("listings.id"), nullable=False, index=True)

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)  # minor units (paise)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="INR")

    provider_order_id: Mapped[str] = mapped_column(String(120), nullable=False, unique=True, index=True)
    provider_payment_id: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    provider_signature: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class SavedListing(Base):
    __tablename__ = "saved_listings"
    __table_args__ = (UniqueConstraint("user_id", "listing_id", name="uq_saved_listings_user_listing"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    listing_id: Mapped[int] = mapped_column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Visit appointments
# -----------------------------
class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_customer_start", "customer_id", "scheduled_start"),
        Index("ix_appointments_promoter_start", "promoter_id", "scheduled_start"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    listing_id: Mapped[int] = mapped_column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    customer_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    promoter_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    scheduled_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    scheduled_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")  # PENDING|ACCEPTED|REJECTED|CANCELLED

    visitor_name: Mapped[str] = mapped_column(String(160), nullable=False)
    visitor_phone: Mapped[str] = mapped_column(String(20), nullable=False)
    visitor_email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    customer_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    promoter_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cancelled_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


# -----------------------------
# Activity log (admin + ledger events)
# -----------------------------
class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    action: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False)
    details_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
