from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from ..auth import require_admin
from ..db import get_store
from ..schemas import ActivityOut, ListingOut, ListingPageOut, RejectIn, UserOut
from ..services import accounts, listing_service
from ..services.auth_service import AuthenticatedUser

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/pending-listings", response_model=list[ListingOut])
def pending_listings(user: AuthenticatedUser = Depends(require_admin), store=Depends(get_store)):
    return listing_service.list_pending(store, user)


@router.get("/listings", response_model=ListingPageOut)
def listings_by_status(
    status: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1),
    user: AuthenticatedUser = Depends(require_admin),
    store=Depends(get_store),
):
    res = listing_service.list_listings(store, user, status=status, page=page, limit=limit)
    return ListingPageOut(
        items=[ListingOut.model_validate(r) for r in res.items],
        total=res.total,
        page=res.page,
        limit=res.limit,
    )


@router.post("/listings/{listing_id}/approve", response_model=ListingOut)
def approve_listing(listing_id: int, user: AuthenticatedUser = Depends(require_admin), store=Depends(get_store)):
    return listing_service.approve_listing(store, user, listing_id)


@router.post("/listings/{listing_id}/reject", response_model=ListingOut)
def reject_listing(
    listing_id: int,
    payload: Optional[RejectIn] = Body(default=None),
    user: AuthenticatedUser = Depends(require_admin),
    store=Depends(get_store),
):
    reason = payload.reason if payload is not None else None
    return listing_service.reject_listing(store, user, listing_id, reason)


@router.get("/users", response_model=list[UserOut])
def users(
    limit: int = Query(default=200, ge=1, le=1000),
    user: AuthenticatedUser = Depends(require_admin),
    store=Depends(get_store),
):
    return accounts.list_users(store, limit=limit)


@router.get("/activity", response_model=list[ActivityOut])
def activity(
    entity_type: Optional[str] = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
    user: AuthenticatedUser = Depends(require_admin),
    store=Depends(get_store),
):
    return [ActivityOut.model_validate(r) for r in store.activity.list_recent(entity_type=entity_type, limit=limit)]
