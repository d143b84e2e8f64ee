from __future__ import annotations

from fastapi import APIRouter, Depends

from ..auth import require_auth
from ..clients.razorpay import RazorpayClient
from ..db import get_store
from ..schemas import OrderIn, OrderOut, VerifyIn, VerifyOut
from ..services import payment_service
from ..services.auth_service import AuthenticatedUser

router = APIRouter(prefix="/payments", tags=["payments"])


def get_razorpay() -> RazorpayClient:
    return RazorpayClient()


@router.post("/razorpay/order", response_model=OrderOut)
def create_order(
    payload: OrderIn,
    user: AuthenticatedUser = Depends(require_auth),
    store=Depends(get_store),
    rzp: RazorpayClient = Depends(get_razorpay),
):
    res = payment_service.create_order(store, user, payload.listing_id, client=rzp)
    if res.already_unlocked or res.order is None:
        return OrderOut(already_unlocked=True, listing_id=payload.listing_id)
    return OrderOut(
        already_unlocked=False,
        key_id=res.key_id,
        order_id=res.order.provider_order_id,
        amount=res.order.amount,
        currency=res.order.currency,
        listing_id=res.order.listing_id,
    )


@router.post("/razorpay/verify", response_model=VerifyOut)
def verify_payment(
    payload: VerifyIn,
    user: AuthenticatedUser = Depends(require_auth),
    store=Depends(get_store),
    rzp: RazorpayClient = Depends(get_razorpay),
):
    res = payment_service.verify_payment(
        store,
        user,
        order_id=payload.razorpay_order_id,
        payment_id=payload.razorpay_payment_id,
        signature=payload.razorpay_signature,
        listing_id=payload.listing_id,
        client=rzp,
    )
    return VerifyOut(
        ok=res.ok,
        already_unlocked=res.already_unlocked,
        order_id=res.order.provider_order_id,
        status=res.order.status,
    )
