from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..config import settings
from ..domain.errors import Forbidden
from ..domain.listing_rules import LIVE, PENDING
from ..domain.roles import ADMIN, CUSTOMER, PROMOTER
from .appointment_service import ACTIVE_STATUSES
from .auth_service import AuthenticatedUser

RECENT_UNLOCKS_LIMIT = 5


@dataclass(frozen=True)
class CustomerStats:
    saved_properties_count: int
    unlocked_contacts_count: int
    active_appointments_count: int


@dataclass(frozen=True)
class PromoterStats:
    total_listings: int
    live_listings: int
    pending_listings: int
    total_unlocks: int
    active_appointments_count: int


@dataclass(frozen=True)
class AdminStats:
    total_users: int
    total_promoters: int
    total_customers: int
    pending_listings: int
    live_listings: int
    total_unlocks: int
    total_revenue: int  # minor units of revenue_currency
    revenue_currency: str


@dataclass(frozen=True)
class RecentUnlock:
    id: int
    created_at: datetime
    listing_id: int
    listing_title: str
    customer_name: str
    customer_phone: str


def _require_role(caller: AuthenticatedUser, role: str) -> None:
    if caller.role != role:
        raise Forbidden(f"Requires role {role}")


def _listing_title(listing) -> str:
    if listing is None:
        return ""
    return listing.title or f"{listing.property_type} in {listing.city or '-'}"


def customer_stats(store, caller: AuthenticatedUser) -> CustomerStats:
    _require_role(caller, CUSTOMER)
    uid = int(caller.user_id)
    return CustomerStats(
        saved_properties_count=store.saved.count(user_id=uid),
        unlocked_contacts_count=store.unlocks.count(user_id=uid),
        active_appointments_count=store.appointments.count(customer_id=uid, statuses=ACTIVE_STATUSES),
    )


def promoter_stats(store, caller: AuthenticatedUser) -> PromoterStats:
    _require_role(caller, PROMOTER)
    uid = int(caller.user_id)
    return PromoterStats(
        total_listings=store.listings.count(promoter_id=uid),
        live_listings=store.listings.count(promoter_id=uid, status=LIVE),
        pending_listings=store.listings.count(promoter_id=uid, status=PENDING),
        total_unlocks=store.unlocks.count(promoter_id=uid),
        active_appointments_count=store.appointments.count(promoter_id=uid, statuses=ACTIVE_STATUSES),
    )


def admin_stats(store, caller: AuthenticatedUser) -> AdminStats:
    _require_role(caller, ADMIN)
    return AdminStats(
        total_users=store.users.count(),
        total_promoters=store.users.count(role=PROMOTER),
        total_customers=store.users.count(role=CUSTOMER),
        pending_listings=store.listings.count(status=PENDING),
        live_listings=store.listings.count(status=LIVE),
        total_unlocks=store.unlocks.count(),
        total_revenue=store.payment_orders.total_paid(),
        revenue_currency=str(settings.unlock_currency),
    )


def recent_unlocks(store, caller: AuthenticatedUser, *, limit: int = RECENT_UNLOCKS_LIMIT) -> list[RecentUnlock]:
    """
    Who unlocked the promoter's listings lately, newest first.

    The customer's own phone is shown: the unlock is the customer's request for contact.
    """
    _require_role(caller, PROMOTER)
    out: list[RecentUnlock] = []
    for u in store.unlocks.recent_for_promoter(int(caller.user_id), limit=max(1, int(limit))):
        customer = store.users.get(int(u.user_id))
        listing = store.listings.get(int(u.listing_id))
        out.append(
            RecentUnlock(
                id=int(u.id),
                created_at=u.created_at,
                listing_id=int(u.listing_id),
                listing_title=_listing_title(listing),
                customer_name=(customer.full_name if customer is not None else None) or "Unknown",
                customer_phone=(customer.phone_e164 if customer is not None else None) or "",
            )
        )
    return out
