from __future__ import annotations

import math
from typing import Any, Mapping, Optional

# Single canonical pending state; older clients may still send PENDING_VERIFICATION.
PENDING = "PENDING"
LIVE = "LIVE"
REJECTED = "REJECTED"
LISTING_STATUSES = (PENDING, LIVE, REJECTED)

# (from, to) pairs reachable through the admin review path only.
REVIEW_TRANSITIONS = {(PENDING, LIVE), (PENDING, REJECTED)}

PROPERTY_TYPES = ("PLOT", "APARTMENT", "VILLA", "HOUSE", "LAND", "COMMERCIAL")
PRICE_TYPES = ("FIXED", "NEGOTIABLE")
FURNISHING_TYPES = ("FURNISHED", "SEMI_FURNISHED", "UNFURNISHED")

REQUIRED_FIELDS = ("property_type", "price_type", "total_price", "total_area")

# Everything a promoter may write. status / review metadata / counters / ppsf are never client input.
EDITABLE_FIELDS = (
    "property_type",
    "total_price",
    "total_area",
    "price_type",
    "title",
    "description",
    "city",
    "locality",
    "address",
    "latitude",
    "longitude",
    "bedrooms",
    "bathrooms",
    "furnishing",
    "amenities",
    "amenities_price",
    "image_urls",
)

DEFAULT_REJECTION_REASON = "Not specified"

# Largest values the integer columns hold (BIGINT for money, INTEGER for room counts).
MAX_TOTAL_PRICE = 2**63 - 1
INT_FIELD_LIMITS = {"bedrooms": 2**31 - 1, "bathrooms": 2**31 - 1, "amenities_price": 2**63 - 1}


def normalize_status(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    s = str(raw).strip().upper()
    if s == "PENDING_VERIFICATION":
        return PENDING
    return s


def _as_number(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        x = float(v)
    except (TypeError, ValueError):
        return None
    return x if math.isfinite(x) else None


def coerce_total_price(v: Any) -> Optional[int]:
    x = _as_number(v)
    return int(x) if x is not None else None  # truncates toward zero


def coerce_total_area(v: Any) -> Optional[float]:
    return _as_number(v)


def price_per_unit_area(total_price: int, total_area: float) -> float:
    if total_area <= 0:
        raise ValueError("total_area must be > 0")
    return float(total_price) / float(total_area)


def _check_optional(data: Mapping[str, Any], violations: list[str]) -> None:
    if data.get("furnishing") is not None and str(data["furnishing"]).upper() not in FURNISHING_TYPES:
        violations.append("furnishing")

    for key in ("bedrooms", "bathrooms", "amenities_price"):
        if data.get(key) is None:
            continue
        n = _as_number(data[key])
        if n is None or n < 0 or n > INT_FIELD_LIMITS[key]:
            violations.append(key)

    for key in ("latitude", "longitude"):
        if data.get(key) is not None and _as_number(data[key]) is None:
            violations.append(key)

    for key in ("amenities", "image_urls"):
        v = data.get(key)
        if v is not None and not (isinstance(v, (list, tuple)) and all(isinstance(x, str) for x in v)):
            violations.append(key)


def _check_core(data: Mapping[str, Any], keys: tuple[str, ...], violations: list[str]) -> None:
    if "property_type" in keys:
        pt = data.get("property_type")
        if not pt or str(pt).upper() not in PROPERTY_TYPES:
            violations.append("property_type")

    if "price_type" in keys:
        pr = data.get("price_type")
        if not pr or str(pr).upper() not in PRICE_TYPES:
            violations.append("price_type")

    if "total_price" in keys:
        price = coerce_total_price(data.get("total_price"))
        if price is None or price <= 0 or price > MAX_TOTAL_PRICE:
            violations.append("total_price")

    if "total_area" in keys:
        area = coerce_total_area(data.get("total_area"))
        if area is None or area <= 0:
            violations.append("total_area")


def listing_create_violations(data: Mapping[str, Any]) -> list[str]:
    """
    Every rule a new listing breaks, in a stable order.
    Empty list means the draft is acceptable.
    """
    violations: list[str] = []
    _check_core(data, REQUIRED_FIELDS, violations)
    if data.get("agreement_accepted") is not True:
        violations.append("agreement_accepted")
    _check_optional(data, violations)
    return violations


def listing_edit_violations(changes: Mapping[str, Any]) -> list[str]:
    violations: list[str] = []
    unknown = [k for k in changes if k not in EDITABLE_FIELDS]
    violations.extend(sorted(unknown))
    _check_core(changes, tuple(k for k in REQUIRED_FIELDS if k in changes), violations)
    _check_optional(changes, violations)
    return violations


def can_review(current_status: str, target_status: str) -> bool:
    return (normalize_status(current_status), target_status) in REVIEW_TRANSITIONS


def is_publicly_visible(status: str) -> bool:
    return normalize_status(status) == LIVE
