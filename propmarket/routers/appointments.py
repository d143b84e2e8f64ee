from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends

from ..auth import require_auth, require_promoter, require_role
from ..db import get_store
from ..domain.roles import CUSTOMER
from ..schemas import AppointmentCancelIn, AppointmentIn, AppointmentOut, AppointmentStatusIn
from ..services import appointment_service
from ..services.appointment_service import AppointmentView
from ..services.auth_service import AuthenticatedUser

router = APIRouter(prefix="/appointments", tags=["appointments"])

require_customer = require_role(CUSTOMER)


@router.post("", response_model=AppointmentOut, status_code=201)
def book_visit(
    payload: AppointmentIn,
    user: AuthenticatedUser = Depends(require_customer),
    store=Depends(get_store),
):
    row = appointment_service.create_appointment(
        store, user, payload.listing_id, payload.model_dump(exclude={"listing_id"})
    )
    return AppointmentOut.from_view(AppointmentView(appointment=row, listing=store.listings.get(row.listing_id)))


@router.get("/mine", response_model=list[AppointmentOut])
def my_visits(user: AuthenticatedUser = Depends(require_customer), store=Depends(get_store)):
    return [AppointmentOut.from_view(v) for v in appointment_service.list_customer_appointments(store, user)]


@router.get("/incoming", response_model=list[AppointmentOut])
def incoming_visits(user: AuthenticatedUser = Depends(require_promoter), store=Depends(get_store)):
    """Requests against the promoter's own listings."""
    return [AppointmentOut.from_view(v) for v in appointment_service.list_promoter_appointments(store, user)]


@router.post("/{appointment_id}/status", response_model=AppointmentOut)
def decide_visit(
    appointment_id: int,
    payload: AppointmentStatusIn,
    user: AuthenticatedUser = Depends(require_promoter),
    store=Depends(get_store),
):
    row = appointment_service.update_appointment_status(
        store, user, appointment_id, payload.status, payload.promoter_notes
    )
    return AppointmentOut.model_validate(row)


@router.post("/{appointment_id}/cancel", response_model=AppointmentOut)
def cancel_visit(
    appointment_id: int,
    payload: Optional[AppointmentCancelIn] = Body(default=None),
    user: AuthenticatedUser = Depends(require_auth),
    store=Depends(get_store),
):
    reason = payload.reason if payload is not None else None
    return AppointmentOut.model_validate(appointment_service.cancel_appointment(store, user, appointment_id, reason))
