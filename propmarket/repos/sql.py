from __future__ import annotations

from typing import Optional, Sequence, Tuple

from sqlalchemy import desc, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..domain.errors import Conflict
from ..domain.listing_rules import LIVE
from ..domain.search_filters import SearchFilters
from ..models import ActivityLog, Appointment, Listing, PaymentOrder, SavedListing, Unlock, User

COUNTER_COLUMNS = ("unlock_count", "save_count")


def _insert(db: Session, row) -> None:
    # SAVEPOINT so a constraint violation leaves the outer transaction usable.
    with db.begin_nested():
        db.add(row)
        db.flush()


class SqlUserRepo:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, user_id: int) -> Optional[User]:
        return self.db.get(User, int(user_id))

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.scalar(select(User).where(User.email == email.strip().lower()))

    def add(self, user: User) -> User:
        if self.get_by_email(user.email) is not None:
            raise Conflict("Email already registered")
        try:
            _insert(self.db, user)
        except IntegrityError:
            raise Conflict("Email already registered")
        return user

    def save(self, user: User) -> None:
        self.db.add(user)
        self.db.flush()

    def list_all(self, *, limit: int = 200) -> list[User]:
        return list(self.db.scalars(select(User).order_by(User.id.asc()).limit(int(limit))).all())

    def count(self, *, role: Optional[str] = None) -> int:
        stmt = select(func.count(User.id))
        if role is not None:
            stmt = stmt.where(User.role == role)
        return int(self.db.scalar(stmt) or 0)


class SqlListingRepo:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, listing_id: int) -> Optional[Listing]:
        return self.db.get(Listing, int(listing_id))

    def add(self, listing: Listing) -> Listing:
        self.db.add(listing)
        self.db.flush()
        return listing

    def save(self, listing: Listing) -> None:
        self.db.add(listing)
        self.db.flush()

    def _filtered(self, stmt, *, status: Optional[str], promoter_id: Optional[int]):
        if status is not None:
            stmt = stmt.where(Listing.status == status)
        if promoter_id is not None:
            stmt = stmt.where(Listing.promoter_id == int(promoter_id))
        return stmt

    def list(
        self,
        *,
        status: Optional[str] = None,
        promoter_id: Optional[int] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[Listing]:
        stmt = self._filtered(select(Listing), status=status, promoter_id=promoter_id)
        stmt = stmt.order_by(desc(Listing.created_at), desc(Listing.id)).offset(int(offset))
        if limit is not None:
            stmt = stmt.limit(int(limit))
        return list(self.db.scalars(stmt).all())

    def count(self, *, status: Optional[str] = None, promoter_id: Optional[int] = None) -> int:
        stmt = self._filtered(select(func.count(Listing.id)), status=status, promoter_id=promoter_id)
        return int(self.db.scalar(stmt) or 0)

    def search_live(self, filters: SearchFilters, *, limit: int) -> list[Listing]:
        stmt = select(Listing).where(Listing.status == LIVE)

        if filters.min_ppsf is not None:
            stmt = stmt.where(Listing.price_per_unit_area >= filters.min_ppsf)
        if filters.max_ppsf is not None:
            stmt = stmt.where(Listing.price_per_unit_area <= filters.max_ppsf)
        if filters.city is not None:
            stmt = stmt.where(Listing.city == filters.city)
        if filters.property_type is not None:
            stmt = stmt.where(Listing.property_type == filters.property_type)
        if filters.bedrooms is not None:
            stmt = stmt.where(Listing.bedrooms == filters.bedrooms)
        if filters.min_price is not None:
            stmt = stmt.where(Listing.total_price >= filters.min_price)
        if filters.max_price is not None:
            stmt = stmt.where(Listing.total_price <= filters.max_price)

        stmt = stmt.order_by(desc(Listing.created_at), desc(Listing.id)).limit(int(limit))
        return list(self.db.scalars(stmt).all())

    def increment_counter(self, listing_id: int, column: str, delta: int = 1) -> None:
        if column not in COUNTER_COLUMNS:
            raise ValueError(f"not a counter column: {column}")
        col = getattr(Listing, column)
        stmt = update(Listing).where(Listing.id == int(listing_id))
        if delta < 0:
            # counters never go negative
            stmt = stmt.where(col + int(delta) >= 0)
        self.db.execute(stmt.values({column: col + int(delta)}).execution_options(synchronize_session=False))
        row = self.db.get(Listing, int(listing_id))
        if row is not None:
            self.db.refresh(row, attribute_names=[column])

    def popular_cities(self, *, limit: int) -> list[Tuple[str, int]]:
        n = func.count(Listing.id)
        stmt = (
            select(Listing.city, n)
            .where(Listing.status == LIVE, Listing.city.is_not(None), Listing.city != "")
            .group_by(Listing.city)
            .order_by(desc(n), Listing.city.asc())
            .limit(int(limit))
        )
        return [(str(city), int(count)) for city, count in self.db.execute(stmt).all()]


class SqlUnlockRepo:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, user_id: int, listing_id: int) -> Optional[Unlock]:
        return self.db.scalar(
            select(Unlock).where(Unlock.user_id == int(user_id), Unlock.listing_id == int(listing_id))
        )

    def insert_if_absent(self, unlock: Unlock) -> Tuple[Unlock, bool]:
        existing = self.get(unlock.user_id, unlock.listing_id)
        if existing is not None:
            return existing, False
        try:
            _insert(self.db, unlock)
        except IntegrityError:
            # lost the race against a concurrent insert for the same pair
            existing = self.get(unlock.user_id, unlock.listing_id)
            if existing is None:
                raise
            return existing, False
        return unlock, True

    def list_for_user(self, user_id: int) -> list[Unlock]:
        stmt = select(Unlock).where(Unlock.user_id == int(user_id)).order_by(desc(Unlock.created_at), desc(Unlock.id))
        return list(self.db.scalars(stmt).all())

    def count(self, *, user_id: Optional[int] = None, promoter_id: Optional[int] = None) -> int:
        stmt = select(func.count(Unlock.id))
        if user_id is not None:
            stmt = stmt.where(Unlock.user_id == int(user_id))
        if promoter_id is not None:
            stmt = stmt.join(Listing, Listing.id == Unlock.listing_id).where(Listing.promoter_id == int(promoter_id))
        return int(self.db.scalar(stmt) or 0)

    def recent_for_promoter(self, promoter_id: int, *, limit: int) -> list[Unlock]:
        stmt = (
            select(Unlock)
            .join(Listing, Listing.id == Unlock.listing_id)
            .where(Listing.promoter_id == int(promoter_id))
            .order_by(desc(Unlock.created_at), desc(Unlock.id))
            .limit(int(limit))
        )
        return list(self.db.scalars(stmt).all())


class SqlPaymentOrderRepo:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_by_provider_order_id(self, provider_order_id: str) -> Optional[PaymentOrder]:
        return self.db.scalar(select(PaymentOrder).where(PaymentOrder.provider_order_id == str(provider_order_id)))

    def add(self, order: PaymentOrder) -> PaymentOrder:
        try:
            _insert(self.db, order)
        except IntegrityError:
            raise Conflict(f"Duplicate provider order id {order.provider_order_id}")
        return order

    def save(self, order: PaymentOrder) -> None:
        self.db.add(order)
        self.db.flush()

    def total_paid(self) -> int:
        stmt = select(func.coalesce(func.sum(PaymentOrder.amount), 0)).where(PaymentOrder.status == "PAID")
        return int(self.db.scalar(stmt) or 0)


class SqlSavedListingRepo:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, user_id: int, listing_id: int) -> Optional[SavedListing]:
        return self.db.scalar(
            select(SavedListing).where(SavedListing.user_id == int(user_id), SavedListing.listing_id == int(listing_id))
        )

    def insert_if_absent(self, saved: SavedListing) -> Tuple[SavedListing, bool]:
        existing = self.get(saved.user_id, saved.listing_id)
        if existing is not None:
            return existing, False
        try:
            _insert(self.db, saved)
        except IntegrityError:
            existing = self.get(saved.user_id, saved.listing_id)
            if existing is None:
                raise
            return existing, False
        return saved, True

    def delete(self, user_id: int, listing_id: int) -> bool:
        row = self.get(user_id, listing_id)
        if row is None:
            return False
        self.db.delete(row)
        self.db.flush()
        return True

    def list_for_user(self, user_id: int) -> list[SavedListing]:
        stmt = (
            select(SavedListing)
            .where(SavedListing.user_id == int(user_id))
            .order_by(desc(SavedListing.created_at), desc(SavedListing.id))
        )
        return list(self.db.scalars(stmt).all())

    def count(self, *, user_id: int) -> int:
        return int(self.db.scalar(select(func.count(SavedListing.id)).where(SavedListing.user_id == int(user_id))) or 0)


class SqlAppointmentRepo:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, appointment_id: int) -> Optional[Appointment]:
        return self.db.get(Appointment, int(appointment_id))

    def add(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        self.db.flush()
        return appointment

    def save(self, appointment: Appointment) -> None:
        self.db.add(appointment)
        self.db.flush()

    def _list(self, *criteria) -> list[Appointment]:
        stmt = select(Appointment).where(*criteria).order_by(desc(Appointment.scheduled_start), desc(Appointment.id))
        return list(self.db.scalars(stmt).all())

    def list_for_customer(self, customer_id: int) -> list[Appointment]:
        return self._list(Appointment.customer_id == int(customer_id))

    def list_for_promoter(self, promoter_id: int) -> list[Appointment]:
        return self._list(Appointment.promoter_id == int(promoter_id))

    def count(
        self,
        *,
        customer_id: Optional[int] = None,
        promoter_id: Optional[int] = None,
        statuses: Optional[Sequence[str]] = None,
    ) -> int:
        stmt = select(func.count(Appointment.id))
        if customer_id is not None:
            stmt = stmt.where(Appointment.customer_id == int(customer_id))
        if promoter_id is not None:
            stmt = stmt.where(Appointment.promoter_id == int(promoter_id))
        if statuses is not None:
            stmt = stmt.where(Appointment.status.in_(list(statuses)))
        return int(self.db.scalar(stmt) or 0)


class SqlActivityRepo:
    def __init__(self, db: Session) -> None:
        self.db = db

    def add(self, row: ActivityLog) -> ActivityLog:
        self.db.add(row)
        self.db.flush()
        return row

    def list_recent(self, *, entity_type: Optional[str] = None, limit: int = 200) -> list[ActivityLog]:
        stmt = select(ActivityLog)
        if entity_type:
            stmt = stmt.where(ActivityLog.entity_type == entity_type)
        stmt = stmt.order_by(desc(ActivityLog.id)).limit(int(limit))
        return list(self.db.scalars(stmt).all())


class SqlStore:
    """Store backed by one SQLAlchemy session; the caller owns the session lifecycle."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.users = SqlUserRepo(db)
        self.listings = SqlListingRepo(db)
        self.unlocks = SqlUnlockRepo(db)
        self.payment_orders = SqlPaymentOrderRepo(db)
        self.saved = SqlSavedListingRepo(db)
        self.appointments = SqlAppointmentRepo(db)
        self.activity = SqlActivityRepo(db)

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
