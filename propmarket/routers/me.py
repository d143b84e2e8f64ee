from __future__ import annotations

from fastapi import APIRouter, Depends

from ..auth import require_auth
from ..db import get_store
from ..schemas import ListingOut, UnlockRowOut
from ..services import saved_service, unlock_service
from ..services.auth_service import AuthenticatedUser

router = APIRouter(prefix="/me", tags=["me"])


@router.get("/saved", response_model=list[ListingOut])
def my_saved(user: AuthenticatedUser = Depends(require_auth), store=Depends(get_store)):
    return saved_service.list_saved(store, user)


@router.get("/unlocks", response_model=list[UnlockRowOut])
def my_unlocks(user: AuthenticatedUser = Depends(require_auth), store=Depends(get_store)):
    return unlock_service.list_my_unlocks(store, user)
