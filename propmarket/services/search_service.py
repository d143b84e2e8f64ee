from __future__ import annotations

from typing import Optional

from ..config import settings
from ..domain.search_filters import SearchFilters
from ..models import Listing


def search_live_listings(store, filters: Optional[SearchFilters] = None, *, limit: Optional[int] = None) -> list[Listing]:
    """
    LIVE listings matching `filters`, newest first, capped at search_limit.
    Bounds are inclusive; a filter that failed to parse is simply absent.
    """
    cap = int(settings.search_limit)
    n = cap if limit is None else max(1, min(int(limit), cap))
    return store.listings.search_live(filters or SearchFilters(), limit=n)


POPULAR_CITIES_LIMIT = 20


def popular_cities(store, *, limit: int = POPULAR_CITIES_LIMIT) -> list[str]:
    """Cities with the most LIVE listings, for the search filter dropdown."""
    return [city for city, _ in store.listings.popular_cities(limit=max(1, int(limit)))]
