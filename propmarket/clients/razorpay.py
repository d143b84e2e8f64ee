from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..config import settings


@dataclass(frozen=True)
class RazorpayOrder:
    id: str
    amount: int
    currency: str
    receipt: Optional[str]
    raw: dict[str, Any]


class RazorpayClient:
    """
    Thin sync client for the Razorpay Orders API.

    Transport errors and non-2xx answers surface as httpx exceptions; callers
    decide how to report them.
    """

    def __init__(
        self,
        *,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.key_id = key_id if key_id is not None else settings.razorpay_key_id
        self.key_secret = key_secret if key_secret is not None else settings.razorpay_key_secret
        self.base = (base_url or settings.razorpay_base_url).rstrip("/")
        self.timeout = float(timeout if timeout is not None else settings.razorpay_timeout_seconds)
        self._transport = transport

    def enabled(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def create_order(self, *, amount: int, currency: str, receipt: str, notes: dict[str, Any]) -> RazorpayOrder:
        """amount is in minor units (paise)."""
        payload = {"amount": int(amount), "currency": currency, "receipt": receipt, "notes": notes}

        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            r = client.post(
                f"{self.base}/orders",
                json=payload,
                auth=(str(self.key_id), str(self.key_secret)),
            )
            r.raise_for_status()
            data = r.json()

        order_id = data.get("id") if isinstance(data, dict) else None
        if not order_id:
            raise httpx.DecodingError("Razorpay order response has no id", request=r.request)

        return RazorpayOrder(
            id=str(order_id),
            amount=int(data.get("amount") or amount),
            currency=str(data.get("currency") or currency),
            receipt=data.get("receipt"),
            raw=data,
        )

    def signature_for(self, order_id: str, payment_id: str) -> str:
        # Checkout signature: hex HMAC-SHA256 of "<order_id>|<payment_id>" keyed by the key secret.
        msg = f"{order_id}|{payment_id}".encode("utf-8")
        return hmac.new(str(self.key_secret or "").encode("utf-8"), msg, hashlib.sha256).hexdigest()

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        if not signature or not self.key_secret:
            return False
        expected = self.signature_for(order_id, payment_id).encode("ascii")
        # bytes: compare_digest refuses non-ASCII str
        return hmac.compare_digest(expected, str(signature).encode("utf-8"))
