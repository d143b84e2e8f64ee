from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..config import settings
from ..domain import audit
from ..domain.errors import InvalidState, NotFound
from ..domain.listing_rules import LIVE, normalize_status
from ..domain.masking import mask_phone_e164
from ..models import Listing, Unlock
from .auth_service import AuthenticatedUser
from .listing_service import can_view

log = logging.getLogger(__name__)

PROVIDER_FREE = "FREE"


@dataclass(frozen=True)
class ContactView:
    unlocked: bool
    masked_phone: str
    phone_e164: Optional[str] = None


@dataclass(frozen=True)
class UnlockResult:
    unlocked: bool
    already_unlocked: bool
    unlock: Unlock


def _now() -> datetime:
    return datetime.utcnow()


def _listing_or_404(store, listing_id: int) -> Listing:
    row = store.listings.get(int(listing_id))
    if row is None:
        raise NotFound("Listing not found")
    return row


def bump_counter(store, listing_id: int, column: str, delta: int = 1) -> None:
    """
    Best-effort analytics write, run after the primary write is committed.
    A failure is rolled back and logged; it never reaches the caller.
    """
    try:
        store.listings.increment_counter(int(listing_id), column, delta)
        store.commit()
    except Exception:
        store.rollback()
        log.warning(
            "listing counter update failed",
            exc_info=True,
            extra={"listing_id": int(listing_id)},
        )


def grant_unlock(
    store,
    *,
    user_id: int,
    listing_id: int,
    provider: str,
    payment_ref: Optional[str] = None,
) -> tuple[Unlock, bool]:
    """
    Idempotent insert of the (user, listing) unlock, committed before returning.

    An existing row is returned untouched (created=False). The unlock counter is
    bumped only when this call created the row.
    """
    row, created = store.unlocks.insert_if_absent(
        Unlock(
            user_id=int(user_id),
            listing_id=int(listing_id),
            payment_provider=provider,
            payment_ref=payment_ref,
            created_at=_now(),
        )
    )
    if not created:
        return row, False

    audit.activity_write(
        store,
        actor_user_id=int(user_id),
        action=audit.UNLOCK_CONTACT,
        entity_type="listing",
        entity_id=listing_id,
        details={"provider": provider, "payment_ref": payment_ref},
    )
    store.commit()
    log.info("contact unlocked", extra={"user_id": int(user_id), "listing_id": int(listing_id)})

    bump_counter(store, listing_id, "unlock_count", 1)
    return row, True


def is_unlocked(store, user_id: int, listing_id: int) -> bool:
    return store.unlocks.get(int(user_id), int(listing_id)) is not None


def get_contact(store, listing_id: int, caller: Optional[AuthenticatedUser] = None) -> ContactView:
    """
    The promoter's phone for `listing_id`, masked unless `caller` holds an unlock.
    Anonymous callers always get the masked form.
    """
    listing = _listing_or_404(store, listing_id)
    if not can_view(listing, caller):
        raise NotFound("Listing not found")

    promoter = store.users.get(int(listing.promoter_id))
    phone = (promoter.phone_e164 if promoter is not None else None) or ""
    masked = mask_phone_e164(phone)

    if caller is None or not is_unlocked(store, caller.user_id, listing.id):
        return ContactView(unlocked=False, masked_phone=masked)

    return ContactView(unlocked=True, masked_phone=masked, phone_e164=phone or None)


def unlock(store, caller: AuthenticatedUser, listing_id: int) -> UnlockResult:
    listing = _listing_or_404(store, listing_id)

    existing = store.unlocks.get(int(caller.user_id), int(listing.id))
    if existing is not None:
        return UnlockResult(unlocked=True, already_unlocked=True, unlock=existing)

    if normalize_status(listing.status) != LIVE:
        raise InvalidState("Listing is not live")
    if not settings.free_unlock_enabled:
        raise InvalidState("payment required")

    row, created = grant_unlock(store, user_id=caller.user_id, listing_id=listing.id, provider=PROVIDER_FREE)
    return UnlockResult(unlocked=True, already_unlocked=not created, unlock=row)


def list_my_unlocks(store, caller: AuthenticatedUser) -> list[Unlock]:
    return store.unlocks.list_for_user(int(caller.user_id))
