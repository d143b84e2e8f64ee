from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..auth import require_auth
from ..db import get_store
from ..schemas import AdminStatsOut, CustomerStatsOut, PromoterStatsOut, RecentUnlockOut
from ..services import dashboard_service
from ..services.auth_service import AuthenticatedUser

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/customer", response_model=CustomerStatsOut)
def customer_dashboard(user: AuthenticatedUser = Depends(require_auth), store=Depends(get_store)):
    return dashboard_service.customer_stats(store, user)


@router.get("/promoter", response_model=PromoterStatsOut)
def promoter_dashboard(user: AuthenticatedUser = Depends(require_auth), store=Depends(get_store)):
    return dashboard_service.promoter_stats(store, user)


@router.get("/promoter/recent-unlocks", response_model=list[RecentUnlockOut])
def promoter_recent_unlocks(
    limit: int = Query(default=dashboard_service.RECENT_UNLOCKS_LIMIT, ge=1, le=50),
    user: AuthenticatedUser = Depends(require_auth),
    store=Depends(get_store),
):
    return dashboard_service.recent_unlocks(store, user, limit=limit)


@router.get("/admin", response_model=AdminStatsOut)
def admin_dashboard(user: AuthenticatedUser = Depends(require_auth), store=Depends(get_store)):
    return dashboard_service.admin_stats(store, user)
