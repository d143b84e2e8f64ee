from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from ..auth import optional_auth, require_auth, require_promoter
from ..db import get_store
from ..domain.search_filters import SearchFilters
from ..schemas import (
    ContactOut,
    ListingCreate,
    ListingDetailOut,
    ListingOut,
    SaveOut,
    UnlockOut,
    snake_listing_keys,
)
from ..services import listing_service, saved_service, search_service, unlock_service
from ..services.auth_service import AuthenticatedUser

router = APIRouter(prefix="/listings", tags=["listings"])


@router.get("", response_model=list[ListingOut])
def search_listings(
    min_ppsf: Optional[str] = Query(default=None, alias="minPpsf"),
    max_ppsf: Optional[str] = Query(default=None, alias="maxPpsf"),
    city: Optional[str] = Query(default=None),
    property_type: Optional[str] = Query(default=None, alias="propertyType"),
    bedrooms: Optional[str] = Query(default=None),
    min_price: Optional[str] = Query(default=None, alias="minPrice"),
    max_price: Optional[str] = Query(default=None, alias="maxPrice"),
    store=Depends(get_store),
):
    """
    Public projection of LIVE listings, newest first.
    Numeric filters are strings here so junk input degrades to "no bound" instead of a 422.
    """
    filters = SearchFilters.from_raw(
        min_ppsf=min_ppsf,
        max_ppsf=max_ppsf,
        city=city,
        property_type=property_type,
        bedrooms=bedrooms,
        min_price=min_price,
        max_price=max_price,
    )
    return search_service.search_live_listings(store, filters)


@router.post("", response_model=ListingOut, status_code=201)
def create_listing(
    payload: ListingCreate,
    user: AuthenticatedUser = Depends(require_promoter),
    store=Depends(get_store),
):
    return listing_service.create_listing(store, user, payload.model_dump())


@router.get("/mine", response_model=list[ListingOut])
def my_listings(user: AuthenticatedUser = Depends(require_promoter), store=Depends(get_store)):
    return listing_service.list_promoter_listings(store, user)


@router.get("/cities", response_model=list[str])
def popular_cities(store=Depends(get_store)):
    return search_service.popular_cities(store)


@router.patch("/{listing_id}", response_model=ListingOut)
def edit_listing(
    listing_id: int,
    payload: dict[str, Any],
    user: AuthenticatedUser = Depends(require_promoter),
    store=Depends(get_store),
):
    return listing_service.edit_listing(store, user, listing_id, snake_listing_keys(payload))


@router.get("/{listing_id}", response_model=ListingDetailOut)
def get_listing(
    listing_id: int,
    viewer: Optional[AuthenticatedUser] = Depends(optional_auth),
    store=Depends(get_store),
):
    row = listing_service.get_listing(store, listing_id, viewer)
    c = unlock_service.get_contact(store, listing_id, viewer)
    return ListingDetailOut(
        listing=ListingOut.model_validate(row),
        contact=ContactOut(unlocked=c.unlocked, masked_phone=c.masked_phone, phone_e164=c.phone_e164),
    )


@router.get("/{listing_id}/contact", response_model=ContactOut)
def get_contact(
    listing_id: int,
    viewer: Optional[AuthenticatedUser] = Depends(optional_auth),
    store=Depends(get_store),
):
    c = unlock_service.get_contact(store, listing_id, viewer)
    return ContactOut(unlocked=c.unlocked, masked_phone=c.masked_phone, phone_e164=c.phone_e164)


@router.post("/{listing_id}/unlock", response_model=UnlockOut)
def unlock_contact(
    listing_id: int,
    user: AuthenticatedUser = Depends(require_auth),
    store=Depends(get_store),
):
    res = unlock_service.unlock(store, user, listing_id)
    return UnlockOut(unlocked=res.unlocked, already_unlocked=res.already_unlocked)


@router.post("/{listing_id}/save", response_model=SaveOut)
def save_listing(
    listing_id: int,
    user: AuthenticatedUser = Depends(require_auth),
    store=Depends(get_store),
):
    res = saved_service.save_listing(store, user, listing_id)
    return SaveOut(saved=res.saved, already_saved=res.already_saved)


@router.delete("/{listing_id}/save", response_model=SaveOut)
def unsave_listing(
    listing_id: int,
    user: AuthenticatedUser = Depends(require_auth),
    store=Depends(get_store),
):
    saved_service.unsave_listing(store, user, listing_id)
    return SaveOut(saved=False)
