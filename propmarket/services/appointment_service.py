from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from ..domain.errors import Forbidden, InvalidInput, InvalidState, NotFound
from ..domain.roles import CUSTOMER, PROMOTER
from ..models import Appointment, Listing
from .accounts import is_e164, normalize_phone
from .auth_service import AuthenticatedUser
from .listing_service import can_view

log = logging.getLogger(__name__)

PENDING = "PENDING"
ACCEPTED = "ACCEPTED"
REJECTED = "REJECTED"
CANCELLED = "CANCELLED"

ACTIVE_STATUSES = (PENDING, ACCEPTED)
PROMOTER_DECISIONS = (ACCEPTED, REJECTED)

VISIT_LENGTH = timedelta(hours=1)


@dataclass(frozen=True)
class AppointmentView:
    appointment: Appointment
    listing: Optional[Listing]


def _now() -> datetime:
    return datetime.utcnow()


def _require_role(caller: AuthenticatedUser, role: str) -> None:
    if caller.role != role:
        raise Forbidden(f"Requires role {role}")


def _get_or_404(store, appointment_id: int) -> Appointment:
    row = store.appointments.get(int(appointment_id))
    if row is None:
        raise NotFound("Appointment not found")
    return row


def _clean(v: Any) -> str:
    return str(v or "").strip()


def parse_slot(date_s: Any, time_s: Any) -> tuple[Optional[datetime], list[str]]:
    """
    "YYYY-MM-DD" + "HH:MM" -> naive UTC start. Returns (start, violations).
    """
    violations: list[str] = []
    day = clock = None
    try:
        day = datetime.strptime(_clean(date_s), "%Y-%m-%d").date()
    except ValueError:
        violations.append("scheduled_date")
    try:
        clock = datetime.strptime(_clean(time_s), "%H:%M").time()
    except ValueError:
        violations.append("scheduled_time")
    if day is None or clock is None:
        return None, violations
    return datetime.combine(day, clock), violations


def create_appointment(
    store,
    caller: AuthenticatedUser,
    listing_id: int,
    data: Mapping[str, Any],
    *,
    now: Optional[datetime] = None,
) -> Appointment:
    """
    Book a one-hour visit to a LIVE listing. The listing's promoter decides later.

    Bad fields are reported together; a slot in the past counts as a bad scheduled_date.
    """
    _require_role(caller, CUSTOMER)

    listing = store.listings.get(int(listing_id))
    # customers only see LIVE listings, so anything else reads as missing
    if listing is None or not can_view(listing, caller):
        raise NotFound("Listing not found")

    start, violations = parse_slot(data.get("scheduled_date"), data.get("scheduled_time"))
    if start is not None and start <= (now or _now()):
        violations.append("scheduled_date")

    name = _clean(data.get("visitor_name"))
    phone = normalize_phone(data.get("visitor_phone"))
    email = _clean(data.get("visitor_email")).lower() or None
    if not name:
        violations.append("visitor_name")
    if phone is None or not is_e164(phone):
        violations.append("visitor_phone")
    if email is not None and "@" not in email:
        violations.append("visitor_email")
    if violations:
        raise InvalidInput(violations)

    row = Appointment(
        listing_id=int(listing.id),
        customer_id=int(caller.user_id),
        promoter_id=int(listing.promoter_id),
        scheduled_start=start,
        scheduled_end=start + VISIT_LENGTH,
        status=PENDING,
        visitor_name=name,
        visitor_phone=phone,
        visitor_email=email,
        customer_notes=_clean(data.get("message")) or None,
        created_at=_now(),
    )
    store.appointments.add(row)
    store.commit()
    log.info(
        "appointment booked",
        extra={
            "user_id": int(caller.user_id),
            "role": caller.role,
            "listing_id": int(listing.id),
            "appointment_id": int(row.id),
        },
    )
    return row


def _with_listings(store, rows: list[Appointment]) -> list[AppointmentView]:
    return [AppointmentView(appointment=r, listing=store.listings.get(int(r.listing_id))) for r in rows]


def list_customer_appointments(store, caller: AuthenticatedUser) -> list[AppointmentView]:
    _require_role(caller, CUSTOMER)
    return _with_listings(store, store.appointments.list_for_customer(int(caller.user_id)))


def list_promoter_appointments(store, caller: AuthenticatedUser) -> list[AppointmentView]:
    _require_role(caller, PROMOTER)
    return _with_listings(store, store.appointments.list_for_promoter(int(caller.user_id)))


def update_appointment_status(
    store,
    caller: AuthenticatedUser,
    appointment_id: int,
    status: Any,
    promoter_notes: Optional[str] = None,
) -> Appointment:
    """Owning promoter accepts or rejects a PENDING request."""
    _require_role(caller, PROMOTER)
    row = _get_or_404(store, appointment_id)
    if int(row.promoter_id) != int(caller.user_id):
        raise Forbidden("Not your appointment")

    target = _clean(status).upper()
    if target not in PROMOTER_DECISIONS:
        raise InvalidInput(["status"])
    if row.status != PENDING:
        raise InvalidState(f"Cannot move appointment from {row.status} to {target}")

    row.status = target
    row.promoter_notes = _clean(promoter_notes) or None
    row.updated_at = _now()
    store.appointments.save(row)
    store.commit()
    log.info(
        "appointment %s",
        target.lower(),
        extra={
            "user_id": int(caller.user_id),
            "role": caller.role,
            "listing_id": int(row.listing_id),
            "appointment_id": int(row.id),
        },
    )
    return row


def cancel_appointment(
    store,
    caller: AuthenticatedUser,
    appointment_id: int,
    reason: Optional[str] = None,
) -> Appointment:
    """The booking customer withdraws a PENDING or ACCEPTED visit."""
    row = _get_or_404(store, appointment_id)
    if int(row.customer_id) != int(caller.user_id):
        raise Forbidden("Not your appointment")
    if row.status not in ACTIVE_STATUSES:
        raise InvalidState(f"Cannot cancel a {row.status} appointment")

    now = _now()
    row.status = CANCELLED
    row.cancelled_at = now
    row.cancelled_by = int(caller.user_id)
    row.cancellation_reason = _clean(reason) or None
    row.updated_at = now
    store.appointments.save(row)
    store.commit()
    log.info(
        "appointment cancelled",
        extra={"user_id": int(caller.user_id), "role": caller.role, "appointment_id": int(row.id)},
    )
    return row
