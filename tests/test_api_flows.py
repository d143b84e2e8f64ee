from __future__ import annotations

import json
import logging
import uuid

import httpx
import pytest

from conftest import bearer, listing_payload, unique_city
from propmarket.clients.razorpay import RazorpayClient
from propmarket.domain.roles import ADMIN, CUSTOMER, PROMOTER
from propmarket.routers.payments import get_razorpay


def _email(tag: str) -> str:
    return f"{tag}-{uuid.uuid4().hex[:8]}@t.local"


def _register(client, role: str, phone: str | None = None) -> dict:
    r = client.post(
        "/api/auth/register",
        json={"email": _email(role.lower()), "password": "pass1234", "role": role, "full_name": role.title(), "phone": phone},
    )
    assert r.status_code == 201, r.text
    return r.json()


def _h(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert r.headers.get("X-Request-ID")


def test_request_id_is_echoed(client):
    r = client.get("/api/health", headers={"X-Request-ID": "rid-123"})
    assert r.headers["X-Request-ID"] == "rid-123"


@pytest.mark.parametrize("raw", ["x" * 129, "rid 123", '{"forged": true}'])
def test_unsafe_request_id_is_replaced(client, raw):
    r = client.get("/api/health", headers={"X-Request-ID": raw})
    rid = r.headers["X-Request-ID"]
    assert rid != raw
    assert uuid.UUID(rid).version == 4


def test_access_log_carries_identity(client, store, make_user, caplog):
    c = make_user(store, CUSTOMER)
    with caplog.at_level(logging.INFO, logger="propmarket.request"):
        client.get("/api/auth/me", headers={**bearer(c), "X-Request-ID": "rid-me"})
        client.cookies.clear()
        client.get("/api/health", headers={"X-Request-ID": "rid-anon"})

    lines = [json.loads(r.getMessage()) for r in caplog.records if r.name == "propmarket.request"]
    by_rid = {line["request_id"]: line for line in lines}
    assert by_rid["rid-me"]["user_id"] == c.user_id
    assert by_rid["rid-me"]["role"] == CUSTOMER
    assert by_rid["rid-me"]["status_code"] == 200
    assert by_rid["rid-anon"]["user_id"] is None
    assert by_rid["rid-anon"]["role"] is None


def test_register_login_me_logout(client):
    email = _email("cust")
    r = client.post("/api/auth/register", json={"email": email, "password": "pass1234", "fullName": "Cust"})
    assert r.status_code == 201
    assert r.json()["user"]["role"] == "CUSTOMER"

    dup = client.post("/api/auth/register", json={"email": email.upper(), "password": "pass1234"})
    assert dup.status_code == 409
    assert dup.json()["error"] == "Conflict"

    bad = client.post("/api/auth/login", json={"email": email, "password": "nope"})
    assert bad.status_code == 401

    ok = client.post("/api/auth/login", json={"email": email, "password": "pass1234"})
    assert ok.status_code == 200
    token = ok.json()["access_token"]

    me = client.get("/api/auth/me", headers=_h(token))
    assert me.status_code == 200
    assert me.json()["email"] == email

    client.post("/api/auth/logout")
    client.cookies.clear()
    assert client.get("/api/auth/me").status_code == 401


def test_register_cannot_self_assign_admin(client):
    r = client.post("/api/auth/register", json={"email": _email("x"), "password": "pass1234", "role": "ADMIN"})
    assert r.status_code == 400
    assert r.json()["fields"] == ["role"]


def test_register_validation_lists_fields(client):
    r = client.post("/api/auth/register", json={"email": "nope", "password": "1", "phone": "12ab"})
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "InvalidInput"
    assert body["fields"] == ["email", "password", "phone_e164"]


def test_unauthorized_shapes(client):
    r = client.post("/api/listings/1/unlock")
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized", "detail": "Unauthorized: missing"}

    r = client.post("/api/listings/1/unlock", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Unauthorized: invalid"


def test_client_asserted_identity_headers_are_ignored(client):
    r = client.post("/api/listings/1/unlock", headers={"x-user-id": "1", "X-User-Role": "ADMIN"})
    assert r.status_code == 401


def test_end_to_end_listing_to_unlock(client, store, make_user):
    city = unique_city()
    promoter = _register(client, PROMOTER, phone="+919876543210")
    customer = _register(client, CUSTOMER)
    client.cookies.clear()

    admin_h = bearer(make_user(store, ADMIN))

    # create (promoter only)
    r = client.post("/api/listings", json=listing_payload(city=city, status="LIVE"), headers=_h(promoter["access_token"]))
    assert r.status_code == 201, r.text
    listing = r.json()
    assert listing["status"] == "PENDING"
    assert listing["price_per_unit_area"] == pytest.approx(5000)

    r = client.post("/api/listings", json=listing_payload(), headers=_h(customer["access_token"]))
    assert r.status_code == 403

    # hidden until approved
    assert client.get(f"/api/listings/{listing['id']}").status_code == 404
    assert listing["id"] not in [x["id"] for x in client.get("/api/listings", params={"city": city}).json()]
    mine = client.get("/api/listings/mine", headers=_h(promoter["access_token"])).json()
    assert [x["id"] for x in mine] == [listing["id"]]

    pending = client.get("/api/admin/pending-listings", headers=admin_h).json()
    assert listing["id"] in [x["id"] for x in pending]

    r = client.post(f"/api/admin/listings/{listing['id']}/approve", headers=_h(customer["access_token"]))
    assert r.status_code == 403

    r = client.post(f"/api/admin/listings/{listing['id']}/approve", headers=admin_h)
    assert r.status_code == 200
    assert r.json()["status"] == "LIVE"
    assert r.json()["reviewed_by"] is not None

    again = client.post(f"/api/admin/listings/{listing['id']}/reject", json={"reason": "late"}, headers=admin_h)
    assert again.status_code == 409
    assert again.json()["error"] == "InvalidState"

    # public projection
    found = client.get("/api/listings", params={"city": city, "minPpsf": "5000", "maxPpsf": "not-a-number"}).json()
    assert [x["id"] for x in found] == [listing["id"]]
    assert client.get("/api/listings", params={"city": city, "minPpsf": "5000.01"}).json() == []

    # contact: masked for anonymous and for a customer who has not unlocked
    detail = client.get(f"/api/listings/{listing['id']}").json()
    assert detail["contact"] == {"unlocked": False, "masked_phone": "+91********10", "phone_e164": None}

    c_h = _h(customer["access_token"])
    r = client.get(f"/api/listings/{listing['id']}/contact", headers=c_h)
    assert r.json()["unlocked"] is False

    r = client.post(f"/api/listings/{listing['id']}/unlock", headers=c_h)
    assert r.json() == {"unlocked": True, "already_unlocked": False}
    r = client.post(f"/api/listings/{listing['id']}/unlock", headers=c_h)
    assert r.json() == {"unlocked": True, "already_unlocked": True}

    r = client.get(f"/api/listings/{listing['id']}/contact", headers=c_h)
    assert r.json() == {"unlocked": True, "masked_phone": "+91********10", "phone_e164": "+919876543210"}

    unlocks = client.get("/api/me/unlocks", headers=c_h).json()
    assert [u["listing_id"] for u in unlocks] == [listing["id"]]

    # live listings are frozen for the promoter
    r = client.patch(f"/api/listings/{listing['id']}", json={"title": "new"}, headers=_h(promoter["access_token"]))
    assert r.status_code == 409

    # saved shortlist
    assert client.post(f"/api/listings/{listing['id']}/save", headers=c_h).json() == {"saved": True, "already_saved": False}
    assert [x["id"] for x in client.get("/api/me/saved", headers=c_h).json()] == [listing["id"]]
    assert client.delete(f"/api/listings/{listing['id']}/save", headers=c_h).json()["saved"] is False
    assert client.get("/api/me/saved", headers=c_h).json() == []

    # activity trail
    acts = client.get("/api/admin/activity", params={"entity_type": "listing"}, headers=admin_h).json()
    actions = {(a["action"], a["entity_id"]) for a in acts}
    assert ("APPROVE_LISTING", str(listing["id"])) in actions
    assert ("UNLOCK_CONTACT", str(listing["id"])) in actions


def test_create_listing_validation_shape(client):
    promoter = _register(client, PROMOTER)
    r = client.post(
        "/api/listings",
        json={"property_type": "CASTLE", "total_price": 100, "total_area": 0},
        headers=_h(promoter["access_token"]),
    )
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "InvalidInput"
    assert body["fields"] == ["property_type", "price_type", "total_area", "agreement_accepted"]


def test_bad_types_are_collected_with_every_other_violation(client):
    promoter = _register(client, PROMOTER)
    r = client.post(
        "/api/listings",
        json={"total_price": "lots", "bedrooms": "many", "amenities": "LIFT"},
        headers=_h(promoter["access_token"]),
    )
    assert r.status_code == 400
    assert r.json()["fields"] == [
        "property_type",
        "price_type",
        "total_price",
        "total_area",
        "agreement_accepted",
        "bedrooms",
        "amenities",
    ]


def test_oversized_price_is_invalid_input(client):
    promoter = _register(client, PROMOTER)
    r = client.post("/api/listings", json=listing_payload(total_price=1e20), headers=_h(promoter["access_token"]))
    assert r.status_code == 400
    assert r.json()["fields"] == ["total_price"]

    r = client.post("/api/listings", json=listing_payload(bedrooms=2**40), headers=_h(promoter["access_token"]))
    assert r.status_code == 400
    assert r.json()["fields"] == ["bedrooms"]


def test_large_price_within_bigint_is_stored(client):
    promoter = _register(client, PROMOTER)
    r = client.post(
        "/api/listings",
        json=listing_payload(total_price=50_000_000_000, total_area=10_000),
        headers=_h(promoter["access_token"]),
    )
    assert r.status_code == 201, r.text
    assert r.json()["total_price"] == 50_000_000_000


def test_camel_case_listing_keys(client):
    promoter = _register(client, PROMOTER)
    h = _h(promoter["access_token"])
    body = {
        "propertyType": "villa",
        "priceType": "fixed",
        "totalPrice": 9_000_000,
        "totalArea": 1_500,
        "agreementAccepted": True,
        "imageUrls": ["a.jpg"],
    }
    r = client.post("/api/listings", json=body, headers=h)
    assert r.status_code == 201, r.text
    created = r.json()
    assert created["property_type"] == "VILLA"
    assert created["image_urls"] == ["a.jpg"]

    r = client.patch(f"/api/listings/{created['id']}", json={"totalArea": 3_000}, headers=h)
    assert r.status_code == 200
    assert r.json()["price_per_unit_area"] == pytest.approx(3000)


def test_edit_by_owner_and_stranger(client):
    owner = _register(client, PROMOTER)
    stranger = _register(client, PROMOTER)
    created = client.post("/api/listings", json=listing_payload(), headers=_h(owner["access_token"])).json()

    r = client.patch(f"/api/listings/{created['id']}", json={"total_area": 2000}, headers=_h(owner["access_token"]))
    assert r.status_code == 200
    assert r.json()["price_per_unit_area"] == pytest.approx(2500)

    r = client.patch(f"/api/listings/{created['id']}", json={"title": "x"}, headers=_h(stranger["access_token"]))
    assert r.status_code == 403

    r = client.patch(f"/api/listings/{created['id']}", json={"status": "LIVE"}, headers=_h(owner["access_token"]))
    assert r.status_code == 400
    assert r.json()["fields"] == ["status"]


def test_admin_listings_pagination(client, store, make_user):
    admin_h = bearer(make_user(store, ADMIN))
    r = client.get("/api/admin/listings", params={"status": "PENDING", "page": 1, "limit": 1}, headers=admin_h)
    assert r.status_code == 200
    body = r.json()
    assert body["page"] == 1 and body["limit"] == 1
    assert len(body["items"]) <= 1

    users = client.get("/api/admin/users", headers=admin_h)
    assert users.status_code == 200


def test_reject_without_body_uses_default_reason(client, store, make_user):
    promoter = _register(client, PROMOTER)
    client.cookies.clear()
    admin_h = bearer(make_user(store, ADMIN))
    created = client.post("/api/listings", json=listing_payload(), headers=_h(promoter["access_token"])).json()
    r = client.post(f"/api/admin/listings/{created['id']}/reject", headers=admin_h)
    assert r.status_code == 200
    assert r.json()["rejection_reason"] == "Not specified"

    # owner still sees it, the public does not
    assert client.get(f"/api/listings/{created['id']}", headers=_h(promoter["access_token"])).status_code == 200
    assert client.get(f"/api/listings/{created['id']}").status_code == 404


class _FakeOrders:
    def __call__(self, request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": f"order_{uuid.uuid4().hex[:12]}", "amount": 9900, "currency": "INR"})


def test_payment_flow_over_http(client, store, make_user):
    rzp = RazorpayClient(key_id="rzp_test", key_secret="shh", transport=httpx.MockTransport(_FakeOrders()))
    client.app.dependency_overrides[get_razorpay] = lambda: rzp
    try:
        promoter = _register(client, PROMOTER, phone="+919876543210")
        customer = _register(client, CUSTOMER)
        client.cookies.clear()
        admin_h = bearer(make_user(store, ADMIN))
        created = client.post("/api/listings", json=listing_payload(), headers=_h(promoter["access_token"])).json()
        client.post(f"/api/admin/listings/{created['id']}/approve", headers=admin_h)

        c_h = _h(customer["access_token"])
        r = client.post("/api/payments/razorpay/order", json={"listingId": created["id"]}, headers=c_h)
        assert r.status_code == 200, r.text
        order = r.json()
        assert order["already_unlocked"] is False
        assert order["amount"] == 9900
        assert order["key_id"] == "rzp_test"

        bad = client.post(
            "/api/payments/razorpay/verify",
            json={
                "razorpay_order_id": order["order_id"],
                "razorpay_payment_id": "pay_1",
                "razorpay_signature": "nope",
                "listingId": created["id"],
            },
            headers=c_h,
        )
        assert bad.status_code == 400
        assert bad.json()["error"] == "InvalidSignature"

        # that order is burnt; a new one goes through
        order = client.post("/api/payments/razorpay/order", json={"listing_id": created["id"]}, headers=c_h).json()
        sig = rzp.signature_for(order["order_id"], "pay_2")
        ok = client.post(
            "/api/payments/razorpay/verify",
            json={
                "razorpay_order_id": order["order_id"],
                "razorpay_payment_id": "pay_2",
                "razorpay_signature": sig,
                "listing_id": created["id"],
            },
            headers=c_h,
        )
        assert ok.status_code == 200
        assert ok.json() == {"ok": True, "already_unlocked": False, "order_id": order["order_id"], "status": "PAID"}

        contact = client.get(f"/api/listings/{created['id']}/contact", headers=c_h).json()
        assert contact["phone_e164"] == "+919876543210"

        again = client.post("/api/payments/razorpay/order", json={"listingId": created["id"]}, headers=c_h).json()
        assert again["already_unlocked"] is True
    finally:
        client.app.dependency_overrides.clear()


def test_payments_answer_not_configured_without_keys(client):
    customer = _register(client, CUSTOMER)
    client.cookies.clear()
    r = client.post("/api/payments/razorpay/order", json={"listingId": 1}, headers=_h(customer["access_token"]))
    assert r.status_code == 409
    assert r.json()["detail"] == "payment provider not configured"
