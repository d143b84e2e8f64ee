from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional


def parse_bound(raw: Any) -> Optional[float]:
    """
    Lenient numeric parse for query-string filters.
    Blank, unparsable, NaN and +/-inf all mean "no bound".
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return None
    try:
        x = float(raw)
    except (TypeError, ValueError):
        return None
    return x if math.isfinite(x) else None


def parse_int(raw: Any) -> Optional[int]:
    x = parse_bound(raw)
    return int(x) if x is not None else None


def _clean_str(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None


@dataclass(frozen=True)
class SearchFilters:
    min_ppsf: Optional[float] = None
    max_ppsf: Optional[float] = None
    city: Optional[str] = None
    property_type: Optional[str] = None
    bedrooms: Optional[int] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None

    @classmethod
    def from_raw(
        cls,
        *,
        min_ppsf: Any = None,
        max_ppsf: Any = None,
        city: Any = None,
        property_type: Any = None,
        bedrooms: Any = None,
        min_price: Any = None,
        max_price: Any = None,
    ) -> "SearchFilters":
        pt = _clean_str(property_type)
        return cls(
            min_ppsf=parse_bound(min_ppsf),
            max_ppsf=parse_bound(max_ppsf),
            city=_clean_str(city),
            property_type=pt.upper() if pt else None,
            bedrooms=parse_int(bedrooms),
            min_price=parse_bound(min_price),
            max_price=parse_bound(max_price),
        )

    def matches(self, *, ppsf: float, city: Optional[str], property_type: str, bedrooms: Optional[int], total_price: float) -> bool:
        if self.min_ppsf is not None and ppsf < self.min_ppsf:
            return False
        if self.max_ppsf is not None and ppsf > self.max_ppsf:
            return False
        if self.city is not None and city != self.city:
            return False
        if self.property_type is not None and property_type != self.property_type:
            return False
        if self.bedrooms is not None and bedrooms != self.bedrooms:
            return False
        if self.min_price is not None and total_price < self.min_price:
            return False
        if self.max_price is not None and total_price > self.max_price:
            return False
        return True
