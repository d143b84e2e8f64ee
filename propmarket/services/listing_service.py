from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from ..config import settings
from ..domain import audit
from ..domain.errors import Forbidden, InvalidInput, InvalidState, NotFound
from ..domain.listing_rules import (
    DEFAULT_REJECTION_REASON,
    LISTING_STATUSES,
    LIVE,
    PENDING,
    REJECTED,
    can_review,
    coerce_total_area,
    coerce_total_price,
    is_publicly_visible,
    listing_create_violations,
    listing_edit_violations,
    normalize_status,
    price_per_unit_area,
)
from ..domain.roles import ADMIN, PROMOTER
from ..models import Listing
from .auth_service import AuthenticatedUser

_UPPER_FIELDS = ("property_type", "price_type", "furnishing")
_INT_FIELDS = ("bedrooms", "bathrooms", "amenities_price")
_FLOAT_FIELDS = ("latitude", "longitude")
_TEXT_FIELDS = ("title", "description", "city", "locality", "address")


@dataclass(frozen=True)
class ListingPage:
    items: list[Listing]
    total: int
    page: int
    limit: int


def _now() -> datetime:
    return datetime.utcnow()


def _require_role(caller: AuthenticatedUser, role: str) -> None:
    if caller.role != role:
        raise Forbidden(f"Requires role {role}")


def _get_or_404(store, listing_id: int) -> Listing:
    row = store.listings.get(int(listing_id))
    if row is None:
        raise NotFound("Listing not found")
    return row


def _normalized(key: str, value: Any) -> Any:
    if value is None:
        return None
    if key in _UPPER_FIELDS:
        return str(value).strip().upper()
    if key == "total_price":
        return coerce_total_price(value)
    if key == "total_area":
        return coerce_total_area(value)
    if key in _INT_FIELDS:
        return int(float(value))
    if key in _FLOAT_FIELDS:
        return float(value)
    if key in _TEXT_FIELDS:
        return str(value).strip() or None
    if key in ("amenities", "image_urls"):
        return [str(x) for x in value]
    return value


def create_listing(store, caller: AuthenticatedUser, data: Mapping[str, Any]) -> Listing:
    """
    New listing from a promoter, always PENDING.

    status, price_per_unit_area, review metadata and counters in `data` are ignored.
    """
    _require_role(caller, PROMOTER)

    violations = listing_create_violations(data)
    if violations:
        raise InvalidInput(violations)

    now = _now()
    fields = {k: _normalized(k, data.get(k)) for k in (
        "property_type",
        "price_type",
        "total_price",
        "total_area",
        "furnishing",
        *_INT_FIELDS,
        *_FLOAT_FIELDS,
        *_TEXT_FIELDS,
        "amenities",
        "image_urls",
    )}

    row = Listing(
        promoter_id=int(caller.user_id),
        price_per_unit_area=price_per_unit_area(fields["total_price"], fields["total_area"]),
        status=PENDING,
        unlock_count=0,
        save_count=0,
        agreement_accepted_at=now,
        created_at=now,
        **fields,
    )
    store.listings.add(row)
    store.commit()
    return row


def edit_listing(store, caller: AuthenticatedUser, listing_id: int, changes: Mapping[str, Any]) -> Listing:
    """
    Owner-only field edit. Never touches status; not allowed once LIVE.
    price_per_unit_area follows total_price / total_area after every edit.
    """
    _require_role(caller, PROMOTER)
    row = _get_or_404(store, listing_id)

    if int(row.promoter_id) != int(caller.user_id):
        raise Forbidden("Not the owner of this listing")
    if normalize_status(row.status) == LIVE:
        raise InvalidState("Live listings cannot be edited")

    violations = listing_edit_violations(changes)
    if violations:
        raise InvalidInput(violations)

    for key, value in changes.items():
        setattr(row, key, _normalized(key, value))

    row.price_per_unit_area = price_per_unit_area(row.total_price, row.total_area)
    row.updated_at = _now()
    store.listings.save(row)
    store.commit()
    return row


def _review(store, caller: AuthenticatedUser, listing_id: int, target: str) -> Listing:
    _require_role(caller, ADMIN)
    row = _get_or_404(store, listing_id)
    if not can_review(row.status, target):
        raise InvalidState(f"Cannot move listing from {row.status} to {target}")
    return row


def approve_listing(store, caller: AuthenticatedUser, listing_id: int) -> Listing:
    row = _review(store, caller, listing_id, LIVE)

    # status and review metadata go out in one commit
    row.status = LIVE
    row.reviewed_at = _now()
    row.reviewed_by = int(caller.user_id)
    row.rejection_reason = None
    store.listings.save(row)

    audit.activity_write(
        store,
        actor_user_id=caller.user_id,
        action=audit.APPROVE_LISTING,
        entity_type="listing",
        entity_id=row.id,
        details={"status": LIVE},
    )
    store.commit()
    return row


def reject_listing(store, caller: AuthenticatedUser, listing_id: int, reason: Optional[str] = None) -> Listing:
    row = _review(store, caller, listing_id, REJECTED)
    reason_s = str(reason or "").strip() or DEFAULT_REJECTION_REASON

    row.status = REJECTED
    row.reviewed_at = _now()
    row.reviewed_by = int(caller.user_id)
    row.rejection_reason = reason_s
    store.listings.save(row)

    audit.activity_write(
        store,
        actor_user_id=caller.user_id,
        action=audit.REJECT_LISTING,
        entity_type="listing",
        entity_id=row.id,
        details={"status": REJECTED, "reason": reason_s},
    )
    store.commit()
    return row


def list_pending(store, caller: AuthenticatedUser) -> list[Listing]:
    _require_role(caller, ADMIN)
    return store.listings.list(status=PENDING)


def list_listings(
    store,
    caller: AuthenticatedUser,
    *,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> ListingPage:
    _require_role(caller, ADMIN)

    status_s = normalize_status(status) if status else None
    if status_s is not None and status_s not in LISTING_STATUSES:
        raise InvalidInput(["status"])

    page = max(1, int(page or 1))
    limit = min(max(1, int(limit or 20)), int(settings.search_limit))
    items = store.listings.list(status=status_s, offset=(page - 1) * limit, limit=limit)
    total = store.listings.count(status=status_s)
    return ListingPage(items=items, total=total, page=page, limit=limit)


def list_promoter_listings(store, caller: AuthenticatedUser) -> list[Listing]:
    _require_role(caller, PROMOTER)
    return store.listings.list(promoter_id=int(caller.user_id))


def can_view(row: Listing, viewer: Optional[AuthenticatedUser]) -> bool:
    if is_publicly_visible(row.status):
        return True
    if viewer is None:
        return False
    return viewer.role == ADMIN or int(row.promoter_id) == int(viewer.user_id)


def get_listing(store, listing_id: int, viewer: Optional[AuthenticatedUser] = None) -> Listing:
    """LIVE listings for anyone; otherwise only the owner and admins. Others get NotFound."""
    row = _get_or_404(store, listing_id)
    if not can_view(row, viewer):
        raise NotFound("Listing not found")
    return row
