from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db

router = APIRouter(tags=["health"])


@router.get("/health")
def health(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {
        "ok": True,
        "env": settings.app_env,
        "payments_enabled": settings.payments_enabled(),
        "free_unlock_enabled": bool(settings.free_unlock_enabled),
    }
