from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import httpx

from ..clients.razorpay import RazorpayClient
from ..config import settings
from ..domain import audit
from ..domain.errors import (
    Forbidden,
    InvalidInput,
    InvalidSignature,
    InvalidState,
    NotFound,
    Unavailable,
)
from ..domain.listing_rules import LIVE, normalize_status
from ..models import PaymentOrder
from .auth_service import AuthenticatedUser
from .unlock_service import grant_unlock

log = logging.getLogger(__name__)

PROVIDER_RAZORPAY = "RAZORPAY"

ORDER_CREATED = "CREATED"
ORDER_PAID = "PAID"
ORDER_FAILED = "FAILED"

UNLOCK_PURPOSE = "CONTACT_UNLOCK"


@dataclass(frozen=True)
class OrderResult:
    already_unlocked: bool
    order: Optional[PaymentOrder] = None
    key_id: Optional[str] = None


@dataclass(frozen=True)
class VerifyResult:
    ok: bool
    already_unlocked: bool
    order: PaymentOrder


def _now() -> datetime:
    return datetime.utcnow()


def _client(client: Optional[RazorpayClient]) -> RazorpayClient:
    c = client or RazorpayClient()
    if not c.enabled():
        raise InvalidState("payment provider not configured")
    return c


def create_order(
    store,
    caller: AuthenticatedUser,
    listing_id: int,
    *,
    client: Optional[RazorpayClient] = None,
) -> OrderResult:
    """
    Open a provider order for the unlock fee, or short-circuit when the caller
    already holds an unlock for this listing.
    """
    rzp = _client(client)

    listing = store.listings.get(int(listing_id))
    if listing is None:
        raise NotFound("Listing not found")
    if normalize_status(listing.status) != LIVE:
        raise InvalidState("Listing must be LIVE to unlock")

    if store.unlocks.get(int(caller.user_id), int(listing.id)) is not None:
        return OrderResult(already_unlocked=True)

    amount = settings.unlock_fee_minor_units()
    currency = settings.unlock_currency
    receipt = f"unlock_{listing.id}_{caller.user_id}_{int(time.time() * 1000)}"

    try:
        provider_order = rzp.create_order(
            amount=amount,
            currency=currency,
            receipt=receipt,
            notes={"listingId": str(listing.id), "userId": str(caller.user_id), "purpose": UNLOCK_PURPOSE},
        )
    except (httpx.HTTPError, ValueError) as e:
        log.warning(
            "razorpay order creation failed: %s",
            e,
            exc_info=True,
            extra={"user_id": caller.user_id, "listing_id": listing.id},
        )
        raise Unavailable("Payment provider unavailable; retry")

    order = PaymentOrder(
        provider=PROVIDER_RAZORPAY,
        status=ORDER_CREATED,
        user_id=int(caller.user_id),
        listing_id=int(listing.id),
        amount=amount,
        currency=currency,
        provider_order_id=provider_order.id,
        created_at=_now(),
    )
    store.payment_orders.add(order)
    store.commit()

    log.info(
        "payment order created",
        extra={
            "order_id": order.provider_order_id,
            "listing_id": listing.id,
            "user_id": caller.user_id,
            "role": caller.role,
        },
    )
    return OrderResult(already_unlocked=False, order=order, key_id=rzp.key_id)


def verify_payment(
    store,
    caller: AuthenticatedUser,
    *,
    order_id: str,
    payment_id: str,
    signature: str,
    listing_id: int,
    client: Optional[RazorpayClient] = None,
) -> VerifyResult:
    """
    Reconcile a checkout callback into an unlock.

    Checks run in order: order exists, order belongs to caller + listing, order
    not FAILED, signature. A bad signature on a CREATED order marks it FAILED.
    A good one marks it PAID and then upserts the unlock; running it twice is a no-op.
    """
    rzp = _client(client)

    missing = [
        name
        for name, value in (
            ("razorpay_order_id", order_id),
            ("razorpay_payment_id", payment_id),
            ("razorpay_signature", signature),
            ("listing_id", listing_id),
        )
        if value is None or str(value).strip() == ""
    ]
    if missing:
        raise InvalidInput(missing)

    order = store.payment_orders.get_by_provider_order_id(str(order_id))
    if order is None:
        raise NotFound("Order not found")

    if int(order.user_id) != int(caller.user_id) or int(order.listing_id) != int(listing_id):
        raise Forbidden("Order mismatch")

    if order.status == ORDER_FAILED:
        raise InvalidState("Order already failed; create a new order")

    if not rzp.verify_signature(str(order_id), str(payment_id), str(signature)):
        if order.status == ORDER_CREATED:
            order.status = ORDER_FAILED
            order.provider_payment_id = str(payment_id)
            order.provider_signature = str(signature)
            store.payment_orders.save(order)
            audit.activity_write(
                store,
                actor_user_id=caller.user_id,
                action=audit.PAYMENT_FAILED,
                entity_type="payment_order",
                entity_id=order.provider_order_id,
                details={"payment_id": str(payment_id)},
            )
            store.commit()
        log.warning(
            "razorpay signature mismatch",
            extra={"order_id": order.provider_order_id, "user_id": caller.user_id, "role": caller.role},
        )
        raise InvalidSignature("Invalid signature")

    if order.status == ORDER_CREATED:
        order.status = ORDER_PAID
        order.provider_payment_id = str(payment_id)
        order.provider_signature = str(signature)
        order.paid_at = _now()
        store.payment_orders.save(order)
        audit.activity_write(
            store,
            actor_user_id=caller.user_id,
            action=audit.PAYMENT_VERIFIED,
            entity_type="payment_order",
            entity_id=order.provider_order_id,
            details={"payment_id": str(payment_id), "amount": order.amount},
        )
        store.commit()

    _, created = grant_unlock(
        store,
        user_id=caller.user_id,
        listing_id=order.listing_id,
        provider=PROVIDER_RAZORPAY,
        payment_ref=order.provider_payment_id,
    )
    return VerifyResult(ok=True, already_unlocked=not created, order=order)
