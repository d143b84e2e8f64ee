from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from .domain.audit import activity_details


# -------------------- Accounts --------------------

class RegisterIn(BaseModel):
    email: str
    password: str
    full_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("full_name", "fullName"))
    role: str = "CUSTOMER"
    phone_e164: Optional[str] = Field(default=None, validation_alias=AliasChoices("phone_e164", "phone"))


class LoginIn(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: int
    email: str
    role: str
    is_verified: bool
    phone_e164: Optional[str] = None
    full_name: Optional[str] = None
    created_at: datetime
    last_login_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


# -------------------- Listings --------------------

# camelCase keys the web client sends for listing writes
LISTING_KEY_ALIASES = {
    "propertyType": "property_type",
    "priceType": "price_type",
    "totalPrice": "total_price",
    "totalArea": "total_area",
    "agreementAccepted": "agreement_accepted",
    "amenitiesPrice": "amenities_price",
    "imageUrls": "image_urls",
}


def snake_listing_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Rename camelCase listing keys; an explicit snake_case key wins."""
    out = {k: v for k, v in data.items() if k not in LISTING_KEY_ALIASES}
    for camel, snake in LISTING_KEY_ALIASES.items():
        if camel in data and snake not in out:
            out[snake] = data[camel]
    return out


class ListingCreate(BaseModel):
    """
    Every field is Any; the listing service sees raw values and reports
    all violations together. status and price_per_unit_area are dropped.
    """

    property_type: Optional[Any] = None
    price_type: Optional[Any] = None
    total_price: Optional[Any] = None
    total_area: Optional[Any] = None
    agreement_accepted: Optional[Any] = None

    title: Optional[Any] = None
    description: Optional[Any] = None
    city: Optional[Any] = None
    locality: Optional[Any] = None
    address: Optional[Any] = None
    latitude: Optional[Any] = None
    longitude: Optional[Any] = None

    bedrooms: Optional[Any] = None
    bathrooms: Optional[Any] = None
    furnishing: Optional[Any] = None
    amenities: Optional[Any] = None
    amenities_price: Optional[Any] = None
    image_urls: Optional[Any] = None

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _snake_keys(cls, data: Any) -> Any:
        return snake_listing_keys(data) if isinstance(data, dict) else data


class ListingOut(BaseModel):
    id: int
    promoter_id: int
    property_type: str
    total_price: int
    total_area: float
    price_per_unit_area: float
    price_type: str

    title: Optional[str] = None
    description: Optional[str] = None
    city: Optional[str] = None
    locality: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    furnishing: Optional[str] = None
    amenities: List[str] = Field(default_factory=list)
    amenities_price: Optional[int] = None
    image_urls: List[str] = Field(default_factory=list)

    status: str
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[int] = None
    rejection_reason: Optional[str] = None
    unlock_count: int = 0
    save_count: int = 0

    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def _null_lists(cls, data: Any) -> Any:
        if isinstance(data, dict):
            for k in ("amenities", "image_urls"):
                if data.get(k) is None:
                    data[k] = []
            return data
        # ORM object
        out = {k: getattr(data, k, None) for k in cls.model_fields}
        for k in ("amenities", "image_urls"):
            out[k] = list(out.get(k) or [])
        return out


class ListingPageOut(BaseModel):
    items: List[ListingOut]
    total: int
    page: int
    limit: int


class RejectIn(BaseModel):
    reason: Optional[str] = None


# -------------------- Contact / unlocks / saved --------------------

class ContactOut(BaseModel):
    unlocked: bool
    masked_phone: str
    phone_e164: Optional[str] = None


class ListingDetailOut(BaseModel):
    listing: ListingOut
    contact: ContactOut


class UnlockOut(BaseModel):
    unlocked: bool
    already_unlocked: bool


class UnlockRowOut(BaseModel):
    id: int
    listing_id: int
    payment_provider: Optional[str] = None
    payment_ref: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SaveOut(BaseModel):
    saved: bool
    already_saved: bool = False


# -------------------- Payments --------------------

class OrderIn(BaseModel):
    listing_id: int = Field(validation_alias=AliasChoices("listing_id", "listingId"))


class OrderOut(BaseModel):
    already_unlocked: bool
    key_id: Optional[str] = None
    order_id: Optional[str] = None
    amount: Optional[int] = None  # paise
    currency: Optional[str] = None
    listing_id: Optional[int] = None


class VerifyIn(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
    listing_id: int = Field(validation_alias=AliasChoices("listing_id", "listingId"))


class VerifyOut(BaseModel):
    ok: bool
    already_unlocked: bool
    order_id: str
    status: str


# -------------------- Admin --------------------

class ActivityOut(BaseModel):
    id: int
    actor_user_id: Optional[int] = None
    action: str
    entity_type: str
    entity_id: str
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def _parse_details(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return data
        details = activity_details(data)
        return {
            "id": data.id,
            "actor_user_id": data.actor_user_id,
            "action": data.action,
            "entity_type": data.entity_type,
            "entity_id": data.entity_id,
            "details": details,
            "created_at": data.created_at,
        }


# -------------------- Appointments --------------------

class AppointmentIn(BaseModel):
    """Slot and visitor fields stay loose; the appointment service reports every bad field."""

    listing_id: int = Field(validation_alias=AliasChoices("listing_id", "listingId"))
    scheduled_date: Optional[Any] = Field(default=None, validation_alias=AliasChoices("scheduled_date", "scheduledDate"))
    scheduled_time: Optional[Any] = Field(default=None, validation_alias=AliasChoices("scheduled_time", "scheduledTime"))
    visitor_name: Optional[Any] = Field(default=None, validation_alias=AliasChoices("visitor_name", "visitorName"))
    visitor_phone: Optional[Any] = Field(default=None, validation_alias=AliasChoices("visitor_phone", "visitorPhone"))
    visitor_email: Optional[Any] = Field(default=None, validation_alias=AliasChoices("visitor_email", "visitorEmail"))
    message: Optional[Any] = None


class AppointmentStatusIn(BaseModel):
    status: str
    promoter_notes: Optional[str] = Field(default=None, validation_alias=AliasChoices("promoter_notes", "promoterNotes", "notes"))


class AppointmentCancelIn(BaseModel):
    reason: Optional[str] = Field(default=None, validation_alias=AliasChoices("reason", "cancellationReason"))


class ListingSummaryOut(BaseModel):
    id: int
    title: Optional[str] = None
    property_type: str
    city: Optional[str] = None
    locality: Optional[str] = None
    image_urls: List[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def _null_images(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return data
        out = {k: getattr(data, k, None) for k in cls.model_fields}
        out["image_urls"] = list(out.get("image_urls") or [])
        return out


class AppointmentOut(BaseModel):
    id: int
    listing_id: int
    customer_id: int
    promoter_id: int
    scheduled_start: datetime
    scheduled_end: datetime
    status: str
    visitor_name: str
    visitor_phone: str
    visitor_email: Optional[str] = None
    customer_notes: Optional[str] = None
    promoter_notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    listing: Optional[ListingSummaryOut] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_view(cls, view) -> "AppointmentOut":
        out = cls.model_validate(view.appointment)
        if view.listing is not None:
            out.listing = ListingSummaryOut.model_validate(view.listing)
        return out


# -------------------- Dashboards --------------------

class CustomerStatsOut(BaseModel):
    saved_properties_count: int
    unlocked_contacts_count: int
    active_appointments_count: int

    model_config = ConfigDict(from_attributes=True)


class PromoterStatsOut(BaseModel):
    total_listings: int
    live_listings: int
    pending_listings: int
    total_unlocks: int
    active_appointments_count: int

    model_config = ConfigDict(from_attributes=True)


class AdminStatsOut(BaseModel):
    total_users: int
    total_promoters: int
    total_customers: int
    pending_listings: int
    live_listings: int
    total_unlocks: int
    total_revenue: int
    revenue_currency: str

    model_config = ConfigDict(from_attributes=True)


class RecentUnlockOut(BaseModel):
    id: int
    created_at: datetime
    listing_id: int
    listing_title: str
    customer_name: str
    customer_phone: str

    model_config = ConfigDict(from_attributes=True)
