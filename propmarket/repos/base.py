from __future__ import annotations

from typing import Optional, Protocol, Sequence, Tuple

from ..domain.search_filters import SearchFilters
from ..models import ActivityLog, Appointment, Listing, PaymentOrder, SavedListing, Unlock, User


class UserRepo(Protocol):
    def get(self, user_id: int) -> Optional[User]: ...

    def get_by_email(self, email: str) -> Optional[User]: ...

    def add(self, user: User) -> User:
        """Raises Conflict when the email is already taken."""
        ...

    def save(self, user: User) -> None: ...

    def list_all(self, *, limit: int = 200) -> list[User]: ...

    def count(self, *, role: Optional[str] = None) -> int: ...


class ListingRepo(Protocol):
    def get(self, listing_id: int) -> Optional[Listing]: ...

    def add(self, listing: Listing) -> Listing: ...

    def save(self, listing: Listing) -> None: ...

    def list(
        self,
        *,
        status: Optional[str] = None,
        promoter_id: Optional[int] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[Listing]:
        """Newest first."""
        ...

    def count(self, *, status: Optional[str] = None, promoter_id: Optional[int] = None) -> int: ...

    def search_live(self, filters: SearchFilters, *, limit: int) -> list[Listing]:
        """LIVE listings only, newest first."""
        ...

    def increment_counter(self, listing_id: int, column: str, delta: int = 1) -> None: ...

    def popular_cities(self, *, limit: int) -> list[Tuple[str, int]]:
        """(city, LIVE listing count), most listings first, then city name."""
        ...


class UnlockRepo(Protocol):
    def get(self, user_id: int, listing_id: int) -> Optional[Unlock]: ...

    def insert_if_absent(self, unlock: Unlock) -> Tuple[Unlock, bool]:
        """
        Returns (row, created). A concurrent duplicate resolves to the existing
        row with created=False; it is never an error.
        """
        ...

    def list_for_user(self, user_id: int) -> list[Unlock]: ...

    def count(self, *, user_id: Optional[int] = None, promoter_id: Optional[int] = None) -> int:
        """promoter_id counts unlocks on that promoter's listings."""
        ...

    def recent_for_promoter(self, promoter_id: int, *, limit: int) -> list[Unlock]: ...


class PaymentOrderRepo(Protocol):
    def get_by_provider_order_id(self, provider_order_id: str) -> Optional[PaymentOrder]: ...

    def add(self, order: PaymentOrder) -> PaymentOrder:
        """Raises Conflict on a duplicate provider_order_id."""
        ...

    def save(self, order: PaymentOrder) -> None: ...

    def total_paid(self) -> int:
        """Sum of PAID order amounts, minor units."""
        ...


class SavedListingRepo(Protocol):
    def get(self, user_id: int, listing_id: int) -> Optional[SavedListing]: ...

    def insert_if_absent(self, saved: SavedListing) -> Tuple[SavedListing, bool]: ...

    def delete(self, user_id: int, listing_id: int) -> bool: ...

    def list_for_user(self, user_id: int) -> list[SavedListing]: ...

    def count(self, *, user_id: int) -> int: ...


class AppointmentRepo(Protocol):
    def get(self, appointment_id: int) -> Optional[Appointment]: ...

    def add(self, appointment: Appointment) -> Appointment: ...

    def save(self, appointment: Appointment) -> None: ...

    def list_for_customer(self, customer_id: int) -> list[Appointment]:
        """Latest scheduled_start first."""
        ...

    def list_for_promoter(self, promoter_id: int) -> list[Appointment]: ...

    def count(
        self,
        *,
        customer_id: Optional[int] = None,
        promoter_id: Optional[int] = None,
        statuses: Optional[Sequence[str]] = None,
    ) -> int: ...


class ActivityRepo(Protocol):
    def add(self, row: ActivityLog) -> ActivityLog: ...

    def list_recent(self, *, entity_type: Optional[str] = None, limit: int = 200) -> list[ActivityLog]: ...


class Store(Protocol):
    """
    Unit of work handed to every service.

    commit() makes everything written so far durable; services call it between
    a primary write and any best-effort secondary write.
    """

    users: UserRepo
    listings: ListingRepo
    unlocks: UnlockRepo
    payment_orders: PaymentOrderRepo
    saved: SavedListingRepo
    appointments: AppointmentRepo
    activity: ActivityRepo

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
