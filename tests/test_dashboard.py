from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from conftest import bearer, listing_payload
from propmarket.domain.errors import Forbidden
from propmarket.domain.roles import ADMIN, CUSTOMER, PROMOTER
from propmarket.models import PaymentOrder
from propmarket.services import (
    appointment_service,
    dashboard_service,
    listing_service,
    saved_service,
    search_service,
    unlock_service,
)


def _visit() -> dict:
    return {
        "scheduled_date": (datetime.utcnow() + timedelta(days=3)).strftime("%Y-%m-%d"),
        "scheduled_time": "11:00",
        "visitor_name": "Ravi",
        "visitor_phone": "+919000000001",
    }


def test_customer_stats(any_store, make_user, live_listing):
    x, promoter, _ = live_listing(any_store)
    y, _, _ = live_listing(any_store)
    c = make_user(any_store, CUSTOMER)

    assert dashboard_service.customer_stats(any_store, c) == dashboard_service.CustomerStats(0, 0, 0)

    saved_service.save_listing(any_store, c, x.id)
    saved_service.save_listing(any_store, c, y.id)
    unlock_service.unlock(any_store, c, x.id)
    kept = appointment_service.create_appointment(any_store, c, x.id, _visit())
    gone = appointment_service.create_appointment(any_store, c, y.id, _visit())
    appointment_service.update_appointment_status(any_store, promoter, kept.id, "ACCEPTED")
    appointment_service.cancel_appointment(any_store, c, gone.id)

    stats = dashboard_service.customer_stats(any_store, c)
    assert stats.saved_properties_count == 2
    assert stats.unlocked_contacts_count == 1
    assert stats.active_appointments_count == 1


def test_promoter_stats(any_store, make_user):
    p = make_user(any_store, PROMOTER, phone="+919876543210")
    admin = make_user(any_store, ADMIN)
    c = make_user(any_store, CUSTOMER)

    live = listing_service.create_listing(any_store, p, listing_payload())
    listing_service.approve_listing(any_store, admin, live.id)
    listing_service.create_listing(any_store, p, listing_payload())
    dropped = listing_service.create_listing(any_store, p, listing_payload())
    listing_service.reject_listing(any_store, admin, dropped.id, "blurry photos")

    unlock_service.unlock(any_store, c, live.id)
    appointment_service.create_appointment(any_store, c, live.id, _visit())

    stats = dashboard_service.promoter_stats(any_store, p)
    assert stats == dashboard_service.PromoterStats(
        total_listings=3, live_listings=1, pending_listings=1, total_unlocks=1, active_appointments_count=1
    )


def test_admin_stats_counts_everything(mem_store, make_user, live_listing):
    x, _, admin = live_listing(mem_store)
    p2 = make_user(mem_store, PROMOTER)
    listing_service.create_listing(mem_store, p2, listing_payload())
    c = make_user(mem_store, CUSTOMER)
    unlock_service.unlock(mem_store, c, x.id)

    for i, status in enumerate(("PAID", "PAID", "FAILED", "CREATED")):
        mem_store.payment_orders.add(
            PaymentOrder(
                status=status,
                user_id=c.user_id,
                listing_id=x.id,
                amount=9900,
                currency="INR",
                provider_order_id=f"order_{i}",
            )
        )

    stats = dashboard_service.admin_stats(mem_store, admin)
    assert stats.total_users == 4
    assert stats.total_promoters == 2
    assert stats.total_customers == 1
    assert stats.pending_listings == 1
    assert stats.live_listings == 1
    assert stats.total_unlocks == 1
    assert stats.total_revenue == 19800
    assert stats.revenue_currency == "INR"


def test_admin_stats_on_sql_moves_with_new_rows(store, make_user, live_listing):
    admin = make_user(store, ADMIN)
    before = dashboard_service.admin_stats(store, admin)

    x, _, _ = live_listing(store)
    c = make_user(store, CUSTOMER)
    unlock_service.unlock(store, c, x.id)

    after = dashboard_service.admin_stats(store, admin)
    # live_listing adds a promoter and an admin
    assert after.total_users - before.total_users == 3
    assert after.total_promoters - before.total_promoters == 1
    assert after.total_customers - before.total_customers == 1
    assert after.live_listings - before.live_listings == 1
    assert after.total_unlocks - before.total_unlocks == 1


def test_recent_unlocks_newest_first(any_store, make_user, live_listing):
    x, promoter, _ = live_listing(any_store, title=None, city="Pune")
    _, other_promoter, _ = live_listing(any_store)
    first = make_user(any_store, CUSTOMER, phone="+919111111111")
    second = make_user(any_store, CUSTOMER, phone="+919222222222")
    unlock_service.unlock(any_store, first, x.id)
    unlock_service.unlock(any_store, second, x.id)

    rows = dashboard_service.recent_unlocks(any_store, promoter)
    assert [r.customer_phone for r in rows] == ["+919222222222", "+919111111111"]
    assert rows[0].listing_id == x.id
    assert rows[0].listing_title == "APARTMENT in Pune"
    assert rows[0].customer_name == "Customer"

    assert len(dashboard_service.recent_unlocks(any_store, promoter, limit=1)) == 1
    assert dashboard_service.recent_unlocks(any_store, other_promoter) == []


@pytest.mark.parametrize(
    "fn, allowed",
    [
        (dashboard_service.customer_stats, CUSTOMER),
        (dashboard_service.promoter_stats, PROMOTER),
        (dashboard_service.admin_stats, ADMIN),
        (dashboard_service.recent_unlocks, PROMOTER),
    ],
)
def test_dashboards_check_the_role(mem_store, make_user, fn, allowed):
    for role in (CUSTOMER, PROMOTER, ADMIN):
        who = make_user(mem_store, role)
        if role == allowed:
            fn(mem_store, who)
        else:
            with pytest.raises(Forbidden):
                fn(mem_store, who)


def test_popular_cities(mem_store, make_user, live_listing):
    live_listing(mem_store, city="Pune")
    live_listing(mem_store, city="Chennai")
    live_listing(mem_store, city="Chennai")
    live_listing(mem_store, city="Agra")
    live_listing(mem_store, city="")
    p = make_user(mem_store, PROMOTER)
    listing_service.create_listing(mem_store, p, listing_payload(city="Goa"))

    assert search_service.popular_cities(mem_store) == ["Chennai", "Agra", "Pune"]
    assert search_service.popular_cities(mem_store, limit=1) == ["Chennai"]


def test_popular_cities_on_sql_skip_pending(store, make_user, live_listing):
    live_listing(store)
    p = make_user(store, PROMOTER)
    hidden = f"Hidden-{datetime.utcnow().timestamp()}"
    listing_service.create_listing(store, p, listing_payload(city=hidden))

    cities = search_service.popular_cities(store, limit=1000)
    assert "Hyderabad" in cities
    assert hidden not in cities
    assert len(cities) == len(set(cities))


def test_http_visit_flow_and_dashboards(client, store, make_user, live_listing):
    x, promoter, admin = live_listing(store)
    c = make_user(store, CUSTOMER)
    c_h, p_h = bearer(c), bearer(promoter)

    r = client.post(
        "/api/appointments",
        json={"listingId": x.id, **_visit(), "visitorEmail": "r@t.local"},
        headers=c_h,
    )
    assert r.status_code == 201, r.text
    booked = r.json()
    assert booked["status"] == "PENDING"
    assert booked["visitor_email"] == "r@t.local"
    assert booked["listing"]["id"] == x.id
    assert "phone_e164" not in booked["listing"]

    assert client.post("/api/appointments", json={"listing_id": x.id, **_visit()}, headers=p_h).status_code == 403

    r = client.post("/api/appointments", json={"listingId": x.id, "scheduledDate": "soon"}, headers=c_h)
    assert r.status_code == 400
    assert r.json()["fields"] == ["scheduled_date", "scheduled_time", "visitor_name", "visitor_phone"]

    assert [a["id"] for a in client.get("/api/appointments/mine", headers=c_h).json()] == [booked["id"]]
    incoming = client.get("/api/appointments/incoming", headers=p_h).json()
    assert [a["visitor_phone"] for a in incoming] == ["+919000000001"]

    r = client.post(f"/api/appointments/{booked['id']}/status", json={"status": "ACCEPTED", "notes": "gate 2"}, headers=p_h)
    assert r.status_code == 200
    assert r.json()["promoter_notes"] == "gate 2"

    r = client.post(f"/api/appointments/{booked['id']}/status", json={"status": "REJECTED"}, headers=p_h)
    assert r.status_code == 409

    assert client.get("/api/dashboard/customer", headers=c_h).json() == {
        "saved_properties_count": 0,
        "unlocked_contacts_count": 0,
        "active_appointments_count": 1,
    }

    r = client.post(f"/api/appointments/{booked['id']}/cancel", headers=c_h)
    assert r.status_code == 200
    assert r.json()["status"] == "CANCELLED"
    assert r.json()["cancellation_reason"] is None

    client.post(f"/api/listings/{x.id}/unlock", headers=c_h)
    promoter_view = client.get("/api/dashboard/promoter", headers=p_h).json()
    assert promoter_view["total_unlocks"] == 1
    assert promoter_view["active_appointments_count"] == 0

    recent = client.get("/api/dashboard/promoter/recent-unlocks", params={"limit": 3}, headers=p_h).json()
    assert [u["listing_id"] for u in recent] == [x.id]
    assert client.get("/api/dashboard/promoter/recent-unlocks", params={"limit": 0}, headers=p_h).status_code == 400

    assert client.get("/api/dashboard/admin", headers=c_h).status_code == 403
    admin_view = client.get("/api/dashboard/admin", headers=bearer(admin)).json()
    assert admin_view["revenue_currency"] == "INR"
    assert admin_view["live_listings"] >= 1

    client.cookies.clear()
    assert client.get("/api/dashboard/customer").status_code == 401
    cities = client.get("/api/listings/cities")
    assert cities.status_code == 200
    assert "Hyderabad" in cities.json()
