from __future__ import annotations

import threading
from datetime import datetime
from collections import Counter
from typing import Optional, Sequence, Tuple

from ..domain.errors import Conflict
from ..domain.listing_rules import LIVE
from ..domain.search_filters import SearchFilters
from ..models import ActivityLog, Appointment, Listing, PaymentOrder, SavedListing, Unlock, User

COUNTER_COLUMNS = ("unlock_count", "save_count")


def _newest_first(rows):
    return sorted(rows, key=lambda r: (r.created_at or datetime.min, r.id), reverse=True)


class _Table:
    """id -> row with an id sequence; callers hold the store lock."""

    def __init__(self) -> None:
        self.rows: dict[int, object] = {}
        self._next_id = 1

    def insert(self, row) -> None:
        if getattr(row, "id", None) is None:
            row.id = self._next_id
        self._next_id = max(self._next_id, int(row.id)) + 1
        if getattr(row, "created_at", None) is None and hasattr(row, "created_at"):
            row.created_at = datetime.utcnow()
        self.rows[int(row.id)] = row


class MemoryUserRepo:
    def __init__(self, lock: threading.RLock) -> None:
        self._lock = lock
        self._t = _Table()

    def get(self, user_id: int) -> Optional[User]:
        with self._lock:
            return self._t.rows.get(int(user_id))

    def get_by_email(self, email: str) -> Optional[User]:
        key = email.strip().lower()
        with self._lock:
            for u in self._t.rows.values():
                if u.email == key:
                    return u
        return None

    def add(self, user: User) -> User:
        with self._lock:
            if self.get_by_email(user.email) is not None:
                raise Conflict("Email already registered")
            self._t.insert(user)
        return user

    def save(self, user: User) -> None:
        with self._lock:
            self._t.rows[int(user.id)] = user

    def list_all(self, *, limit: int = 200) -> list[User]:
        with self._lock:
            return sorted(self._t.rows.values(), key=lambda u: u.id)[: int(limit)]

    def count(self, *, role: Optional[str] = None) -> int:
        with self._lock:
            return sum(1 for u in self._t.rows.values() if role is None or u.role == role)


class MemoryListingRepo:
    def __init__(self, lock: threading.RLock) -> None:
        self._lock = lock
        self._t = _Table()

    def get(self, listing_id: int) -> Optional[Listing]:
        with self._lock:
            return self._t.rows.get(int(listing_id))

    def add(self, listing: Listing) -> Listing:
        with self._lock:
            self._t.insert(listing)
        return listing

    def save(self, listing: Listing) -> None:
        with self._lock:
            self._t.rows[int(listing.id)] = listing

    def _select(self, status: Optional[str], promoter_id: Optional[int]) -> list[Listing]:
        rows = list(self._t.rows.values())
        if status is not None:
            rows = [r for r in rows if r.status == status]
        if promoter_id is not None:
            rows = [r for r in rows if r.promoter_id == int(promoter_id)]
        return rows

    def list(
        self,
        *,
        status: Optional[str] = None,
        promoter_id: Optional[int] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[Listing]:
        with self._lock:
            rows = _newest_first(self._select(status, promoter_id))
        rows = rows[int(offset):]
        return rows if limit is None else rows[: int(limit)]

    def count(self, *, status: Optional[str] = None, promoter_id: Optional[int] = None) -> int:
        with self._lock:
            return len(self._select(status, promoter_id))

    def search_live(self, filters: SearchFilters, *, limit: int) -> list[Listing]:
        with self._lock:
            rows = [
                r
                for r in self._t.rows.values()
                if r.status == LIVE
                and filters.matches(
                    ppsf=r.price_per_unit_area,
                    city=r.city,
                    property_type=r.property_type,
                    bedrooms=r.bedrooms,
                    total_price=r.total_price,
                )
            ]
        return _newest_first(rows)[: int(limit)]

    def increment_counter(self, listing_id: int, column: str, delta: int = 1) -> None:
        if column not in COUNTER_COLUMNS:
            raise ValueError(f"not a counter column: {column}")
        with self._lock:
            row = self._t.rows.get(int(listing_id))
            if row is None:
                return
            value = int(getattr(row, column) or 0) + int(delta)
            if value >= 0:
                setattr(row, column, value)

    def popular_cities(self, *, limit: int) -> list[Tuple[str, int]]:
        with self._lock:
            counts = Counter(r.city for r in self._t.rows.values() if r.status == LIVE and r.city)
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        return ranked[: int(limit)]


class MemoryUnlockRepo:
    def __init__(self, lock: threading.RLock, listings: MemoryListingRepo) -> None:
        self._lock = lock
        self._t = _Table()
        self._listings = listings

    def get(self, user_id: int, listing_id: int) -> Optional[Unlock]:
        with self._lock:
            for r in self._t.rows.values():
                if r.user_id == int(user_id) and r.listing_id == int(listing_id):
                    return r
        return None

    def insert_if_absent(self, unlock: Unlock) -> Tuple[Unlock, bool]:
        # check and insert under one lock: at most one row per (user, listing)
        with self._lock:
            existing = self.get(unlock.user_id, unlock.listing_id)
            if existing is not None:
                return existing, False
            self._t.insert(unlock)
            return unlock, True

    def list_for_user(self, user_id: int) -> list[Unlock]:
        with self._lock:
            rows = [r for r in self._t.rows.values() if r.user_id == int(user_id)]
        return _newest_first(rows)

    def _on_promoter_listings(self, promoter_id: int) -> list[Unlock]:
        out = []
        for r in self._t.rows.values():
            listing = self._listings.get(r.listing_id)
            if listing is not None and listing.promoter_id == int(promoter_id):
                out.append(r)
        return out

    def count(self, *, user_id: Optional[int] = None, promoter_id: Optional[int] = None) -> int:
        with self._lock:
            rows = list(self._t.rows.values()) if promoter_id is None else self._on_promoter_listings(promoter_id)
        if user_id is not None:
            rows = [r for r in rows if r.user_id == int(user_id)]
        return len(rows)

    def recent_for_promoter(self, promoter_id: int, *, limit: int) -> list[Unlock]:
        with self._lock:
            rows = self._on_promoter_listings(promoter_id)
        return _newest_first(rows)[: int(limit)]


class MemoryPaymentOrderRepo:
    def __init__(self, lock: threading.RLock) -> None:
        self._lock = lock
        self._t = _Table()

    def get_by_provider_order_id(self, provider_order_id: str) -> Optional[PaymentOrder]:
        with self._lock:
            for r in self._t.rows.values():
                if r.provider_order_id == str(provider_order_id):
                    return r
        return None

    def add(self, order: PaymentOrder) -> PaymentOrder:
        with self._lock:
            if self.get_by_provider_order_id(order.provider_order_id) is not None:
                raise Conflict(f"Duplicate provider order id {order.provider_order_id}")
            self._t.insert(order)
        return order

    def save(self, order: PaymentOrder) -> None:
        with self._lock:
            self._t.rows[int(order.id)] = order

    def total_paid(self) -> int:
        with self._lock:
            return sum(int(r.amount) for r in self._t.rows.values() if r.status == "PAID")


class MemorySavedListingRepo:
    def __init__(self, lock: threading.RLock) -> None:
        self._lock = lock
        self._t = _Table()

    def get(self, user_id: int, listing_id: int) -> Optional[SavedListing]:
        with self._lock:
            for r in self._t.rows.values():
                if r.user_id == int(user_id) and r.listing_id == int(listing_id):
                    return r
        return None

    def insert_if_absent(self, saved: SavedListing) -> Tuple[SavedListing, bool]:
        with self._lock:
            existing = self.get(saved.user_id, saved.listing_id)
            if existing is not None:
                return existing, False
            self._t.insert(saved)
            return saved, True

    def delete(self, user_id: int, listing_id: int) -> bool:
        with self._lock:
            row = self.get(user_id, listing_id)
            if row is None:
                return False
            del self._t.rows[int(row.id)]
            return True

    def list_for_user(self, user_id: int) -> list[SavedListing]:
        with self._lock:
            rows = [r for r in self._t.rows.values() if r.user_id == int(user_id)]
        return _newest_first(rows)

    def count(self, *, user_id: int) -> int:
        with self._lock:
            return sum(1 for r in self._t.rows.values() if r.user_id == int(user_id))


class MemoryAppointmentRepo:
    def __init__(self, lock: threading.RLock) -> None:
        self._lock = lock
        self._t = _Table()

    def get(self, appointment_id: int) -> Optional[Appointment]:
        with self._lock:
            return self._t.rows.get(int(appointment_id))

    def add(self, appointment: Appointment) -> Appointment:
        with self._lock:
            self._t.insert(appointment)
        return appointment

    def save(self, appointment: Appointment) -> None:
        with self._lock:
            self._t.rows[int(appointment.id)] = appointment

    def _select(self, customer_id: Optional[int], promoter_id: Optional[int]) -> list[Appointment]:
        with self._lock:
            rows = list(self._t.rows.values())
        if customer_id is not None:
            rows = [r for r in rows if r.customer_id == int(customer_id)]
        if promoter_id is not None:
            rows = [r for r in rows if r.promoter_id == int(promoter_id)]
        return rows

    def list_for_customer(self, customer_id: int) -> list[Appointment]:
        return sorted(self._select(customer_id, None), key=lambda r: (r.scheduled_start, r.id), reverse=True)

    def list_for_promoter(self, promoter_id: int) -> list[Appointment]:
        return sorted(self._select(None, promoter_id), key=lambda r: (r.scheduled_start, r.id), reverse=True)

    def count(
        self,
        *,
        customer_id: Optional[int] = None,
        promoter_id: Optional[int] = None,
        statuses: Optional[Sequence[str]] = None,
    ) -> int:
        rows = self._select(customer_id, promoter_id)
        if statuses is not None:
            rows = [r for r in rows if r.status in statuses]
        return len(rows)


class MemoryActivityRepo:
    def __init__(self, lock: threading.RLock) -> None:
        self._lock = lock
        self._t = _Table()

    def add(self, row: ActivityLog) -> ActivityLog:
        with self._lock:
            self._t.insert(row)
        return row

    def list_recent(self, *, entity_type: Optional[str] = None, limit: int = 200) -> list[ActivityLog]:
        with self._lock:
            rows = list(self._t.rows.values())
        if entity_type:
            rows = [r for r in rows if r.entity_type == entity_type]
        return sorted(rows, key=lambda r: r.id, reverse=True)[: int(limit)]


class MemoryStore:
    """
    Process-local store for tests and demos.

    Writes are visible immediately; commit() and rollback() are no-ops.
    One re-entrant lock guards every table, so check-then-insert is atomic.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.users = MemoryUserRepo(self._lock)
        self.listings = MemoryListingRepo(self._lock)
        self.unlocks = MemoryUnlockRepo(self._lock, self.listings)
        self.payment_orders = MemoryPaymentOrderRepo(self._lock)
        self.saved = MemorySavedListingRepo(self._lock)
        self.appointments = MemoryAppointmentRepo(self._lock)
        self.activity = MemoryActivityRepo(self._lock)

    def commit(self) -> None:
        return None

    def rollback(self) -> None:
        return None
