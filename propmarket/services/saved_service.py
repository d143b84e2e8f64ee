from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..domain.errors import InvalidState, NotFound
from ..domain.listing_rules import LIVE, normalize_status
from ..models import Listing, SavedListing
from .auth_service import AuthenticatedUser
from .unlock_service import bump_counter


@dataclass(frozen=True)
class SaveResult:
    saved: bool
    already_saved: bool


def save_listing(store, caller: AuthenticatedUser, listing_id: int) -> SaveResult:
    listing = store.listings.get(int(listing_id))
    if listing is None:
        raise NotFound("Listing not found")

    if store.saved.get(int(caller.user_id), int(listing.id)) is not None:
        return SaveResult(saved=True, already_saved=True)
    if normalize_status(listing.status) != LIVE:
        raise InvalidState("Only live listings can be saved")

    _, created = store.saved.insert_if_absent(
        SavedListing(user_id=int(caller.user_id), listing_id=int(listing.id), created_at=datetime.utcnow())
    )
    if not created:
        return SaveResult(saved=True, already_saved=True)

    store.commit()
    bump_counter(store, listing.id, "save_count", 1)
    return SaveResult(saved=True, already_saved=False)


def unsave_listing(store, caller: AuthenticatedUser, listing_id: int) -> bool:
    """Removes the shortlist entry if present. Returns whether a row was deleted."""
    removed = store.saved.delete(int(caller.user_id), int(listing_id))
    if not removed:
        return False
    store.commit()
    bump_counter(store, int(listing_id), "save_count", -1)
    return True


def list_saved(store, caller: AuthenticatedUser) -> list[Listing]:
    # listings that went non-LIVE after being saved drop out of the shortlist view
    out: list[Listing] = []
    for row in store.saved.list_for_user(int(caller.user_id)):
        listing = store.listings.get(int(row.listing_id))
        if listing is not None and normalize_status(listing.status) == LIVE:
            out.append(listing)
    return out
