from __future__ import annotations

import math

import pytest

from conftest import listing_payload, unique_city
from propmarket.domain.roles import ADMIN, PROMOTER
from propmarket.domain.search_filters import SearchFilters, parse_bound
from propmarket.services import listing_service, search_service


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, None),
        ("", None),
        ("   ", None),
        ("abc", None),
        ("nan", None),
        ("inf", None),
        ("-inf", None),
        (float("nan"), None),
        (True, None),
        ("4500", 4500.0),
        (" 12.5 ", 12.5),
        (0, 0.0),
    ],
)
def test_parse_bound(raw, expected):
    assert parse_bound(raw) == expected


def test_from_raw_normalizes():
    f = SearchFilters.from_raw(min_ppsf="1e3", max_ppsf="oops", city="  Pune ", property_type="villa", bedrooms="3.0")
    assert f.min_ppsf == 1000.0
    assert f.max_ppsf is None
    assert f.city == "Pune"
    assert f.property_type == "VILLA"
    assert f.bedrooms == 3


def _seed(store, make_user, city):
    """Three LIVE listings (ppsf 4000 / 5000 / 6000), one PENDING and one REJECTED at ppsf 5000."""
    p = make_user(store, PROMOTER)
    a = make_user(store, ADMIN)
    live = []
    for price in (4_000_000, 5_000_000, 6_000_000):
        row = listing_service.create_listing(store, p, listing_payload(city=city, total_price=price, total_area=1_000))
        listing_service.approve_listing(store, a, row.id)
        live.append(row)
    pending = listing_service.create_listing(store, p, listing_payload(city=city))
    rejected = listing_service.create_listing(store, p, listing_payload(city=city))
    listing_service.reject_listing(store, a, rejected.id, "no")
    return live, pending, rejected


def test_only_live_listings_are_projected(any_store, make_user):
    city = unique_city()
    live, pending, rejected = _seed(any_store, make_user, city)

    ids = [r.id for r in search_service.search_live_listings(any_store, SearchFilters(city=city))]
    assert set(ids) == {r.id for r in live}
    assert pending.id not in ids
    assert rejected.id not in ids


def test_newest_first(any_store, make_user):
    city = unique_city()
    live, _, _ = _seed(any_store, make_user, city)
    ids = [r.id for r in search_service.search_live_listings(any_store, SearchFilters(city=city))]
    assert ids == [r.id for r in reversed(live)]


def test_ppsf_bounds_are_inclusive(any_store, make_user):
    city = unique_city()
    live, _, _ = _seed(any_store, make_user, city)

    rows = search_service.search_live_listings(any_store, SearchFilters(city=city, min_ppsf=5000, max_ppsf=6000))
    assert {r.id for r in rows} == {live[1].id, live[2].id}

    rows = search_service.search_live_listings(any_store, SearchFilters(city=city, max_ppsf=4000))
    assert [r.id for r in rows] == [live[0].id]


def test_unparsable_bounds_mean_no_bound(any_store, make_user):
    city = unique_city()
    live, _, _ = _seed(any_store, make_user, city)
    f = SearchFilters.from_raw(city=city, min_ppsf="abc", max_ppsf="Infinity")
    assert {r.id for r in search_service.search_live_listings(any_store, f)} == {r.id for r in live}


def test_equality_and_price_filters(any_store, make_user):
    city = unique_city()
    p = make_user(any_store, PROMOTER)
    a = make_user(any_store, ADMIN)
    villa = listing_service.create_listing(
        any_store, p, listing_payload(city=city, property_type="VILLA", bedrooms=4, total_price=20_000_000, total_area=3_000)
    )
    flat = listing_service.create_listing(
        any_store, p, listing_payload(city=city, property_type="APARTMENT", bedrooms=2, total_price=6_000_000)
    )
    for row in (villa, flat):
        listing_service.approve_listing(any_store, a, row.id)

    def ids(**kw):
        f = SearchFilters.from_raw(city=city, **kw)
        return [r.id for r in search_service.search_live_listings(any_store, f)]

    assert ids(property_type="villa") == [villa.id]
    assert ids(bedrooms="2") == [flat.id]
    assert ids(min_price="10000000") == [villa.id]
    assert ids(max_price="6000000") == [flat.id]


def test_result_is_capped(mem_store, make_user, monkeypatch):
    from propmarket.config import settings

    monkeypatch.setattr(settings, "search_limit", 2)
    city = unique_city()
    _seed(mem_store, make_user, city)
    assert len(search_service.search_live_listings(mem_store, SearchFilters(city=city))) == 2


def test_price_per_area_tracks_inputs(any_store, make_user):
    p = make_user(any_store, PROMOTER)
    row = listing_service.create_listing(any_store, p, listing_payload(total_price=3_333_333, total_area=777.7))
    assert math.isclose(row.price_per_unit_area, row.total_price / row.total_area, abs_tol=1e-2)
