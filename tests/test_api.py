import re
import threading
from decimal import Decimal

import pytest

from idealplots.models.enums import PropertyType
from idealplots.routers import admin as admin_router
from idealplots.schemas.listing import ListingCreate
from idealplots.services.listing_services import ListingServices
from tests import factories

ENQUIRY = {
    "name": "Walk-in Lead",
    "email": "lead@example.com",
    "phone": "+919812345678",
    "requirements": "Looking for a 3BHK apartment in Kochi",
}


def as_admin(admin) -> dict:
    return {"X-User-Id": str(admin.id)}


# =============================================================================
# Public enquiry form
# =============================================================================
@pytest.mark.asyncio
async def test_submit_enquiry(client, fake_redis):
    response = await client.post("/api/enquiries", json=ENQUIRY, headers={"X-Forwarded-For": "203.0.113.7"})

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert re.match(r"^TKT-\d{8}-\d{6}$", body["data"]["ticket_number"])
    assert body["data"]["account_created"] is False
    assert body["message"].endswith(body["data"]["ticket_number"])

    fake_redis.incr.assert_awaited_once_with("ratelimit:enquiry:203.0.113.7")
    fake_redis.expire.assert_awaited_once()


@pytest.mark.asyncio
async def test_enquiry_rate_limit(client, fake_redis):
    fake_redis.incr.return_value = 11

    response = await client.post("/api/enquiries", json=ENQUIRY)

    assert response.status_code == 429
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "http_error"


@pytest.mark.asyncio
async def test_invalid_payload_uses_error_envelope(client):
    response = await client.post("/api/enquiries", json={**ENQUIRY, "email": "not-an-email"})

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "validation_error"
    assert any(err["loc"][-1] == "email" for err in body["details"]["errors"])


# =============================================================================
# Acting user & engine errors
# =============================================================================
@pytest.mark.asyncio
async def test_missing_actor_header(client):
    response = await client.post("/api/admin/listings/1/approve")

    assert response.status_code == 403
    assert response.json()["error"] == "authorization_error"


@pytest.mark.asyncio
async def test_unknown_listing(client, database):
    admin = await database.run(factories.create_admin)

    response = await client.post("/api/admin/listings/9999/approve", headers=as_admin(admin))

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "not_found", "message": "Property not found"}


@pytest.mark.asyncio
async def test_admin_approves_listing(client, database):
    admin = await database.run(factories.create_admin)
    owner = await database.run(factories.create_user)
    listing = await database.run(
        ListingServices.create_listing,
        owner.id,
        ListingCreate(
            title="Heritage house",
            description="Restored nalukettu",
            property_type=PropertyType.HOUSE,
            price=Decimal("8800000"),
            area=Decimal("3200"),
            city="Thrissur",
            location="Ollur",
        ),
    )

    response = await client.post(
        f"/api/admin/listings/{listing.id}/approve", json={"notes": "Title deed checked"}, headers=as_admin(admin)
    )
    assert response.status_code == 200
    body = response.json()
    assert body["data"]["status"] == "active"
    assert body["data"]["review_notes"] == "Title deed checked"

    again = await client.post(f"/api/admin/listings/{listing.id}/approve", headers=as_admin(admin))
    assert again.status_code == 409
    assert again.json()["error"] == "state_transition"

    feed = await client.get("/api/properties/active", params={"limit": 5})
    page = feed.json()["data"]
    assert [item["id"] for item in page["items"]] == [listing.id]
    assert page["pagination"]["hasNext"] is False


@pytest.mark.asyncio
async def test_agent_provisioning_duplicate_is_soft_failure(client, database):
    admin = await database.run(factories.create_admin)
    existing = await database.run(factories.create_user)

    response = await client.post(
        "/api/admin/agents",
        json={
            "name": "Clash",
            "email": existing.email,
            "phone": "+919876500000",
            "temp_password": "Temp@12345",
            "license_number": "KL-9",
        },
        headers=as_admin(admin),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "User with this email or phone number already exists"


@pytest.mark.asyncio
async def test_agent_credential_is_hashed_off_the_event_loop(client, database, monkeypatch):
    admin = await database.run(factories.create_admin)
    hashed_on = []

    def recording_hasher(plain: str) -> str:
        hashed_on.append(threading.current_thread() is threading.main_thread())
        return factories.H60

    monkeypatch.setattr(admin_router, "hash_credential", recording_hasher)

    response = await client.post(
        "/api/admin/agents",
        json={
            "name": "Threaded Agent",
            "email": "threaded@agents.in",
            "phone": "+919876511111",
            "license_number": "KL-10",
        },
        headers=as_admin(admin),
    )

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert hashed_on == [False]


@pytest.mark.asyncio
async def test_page_limit_is_bounded(client):
    response = await client.get("/api/properties/active", params={"limit": 500})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["data"]["database"] == "up"


# =============================================================================
# Browsing listings
# =============================================================================
@pytest.mark.asyncio
async def test_search_properties_endpoint(client, database):
    owner = await database.run(factories.create_user)
    kochi = await database.run(factories.create_listing, owner.id, title="Marine drive flat")
    thrissur = await database.run(
        factories.create_listing, owner.id, city="Thrissur", price=Decimal("9000000"), area=Decimal("3000")
    )
    await database.run(factories.create_listing, owner.id, city="Kollam")

    response = await client.get(
        "/api/properties",
        params=[("city", "Kochi"), ("city", "Thrissur"), ("sort_by", "price"), ("sort_order", "desc")],
    )
    assert response.status_code == 200
    page = response.json()["data"]
    assert [item["id"] for item in page["items"]] == [thrissur.id, kochi.id]
    assert page["pagination"]["total"] == 2

    text = await client.get("/api/properties", params={"search": "marine"})
    assert [item["id"] for item in text.json()["data"]["items"]] == [kochi.id]

    inverted = await client.get("/api/properties", params={"price_min": 5000000, "price_max": 1000})
    assert inverted.status_code == 422
    assert inverted.json()["error"] == "validation_error"


@pytest.mark.asyncio
async def test_property_detail_and_edit_endpoints(client, database):
    owner = await database.run(factories.create_user)
    buyer = await database.run(factories.create_user)
    listing = await database.run(factories.create_listing, owner.id, slug="kakkanad-flat")

    detail = await client.get("/api/properties/kakkanad-flat")
    assert detail.status_code == 200
    assert detail.json()["data"]["listing_id"] == listing.listing_id
    assert detail.json()["data"]["images"] == []

    edited = await client.put(
        f"/api/properties/{listing.id}", json={"price": "3600000"}, headers={"X-User-Id": str(owner.id)}
    )
    assert edited.status_code == 200
    assert Decimal(edited.json()["data"]["price_per_area"]) == Decimal("3000.00")

    forbidden = await client.put(
        f"/api/properties/{listing.id}", json={"title": "Taken"}, headers={"X-User-Id": str(buyer.id)}
    )
    assert forbidden.status_code == 403

    await client.post(f"/api/properties/{listing.id}/favorite", headers={"X-User-Id": str(buyer.id)})
    favorites = await client.get("/api/properties/favorites", headers={"X-User-Id": str(buyer.id)})
    assert favorites.status_code == 200
    assert [item["id"] for item in favorites.json()["data"]["items"]] == [listing.id]

    missing = await client.get("/api/properties/no-such-flat")
    assert missing.status_code == 404


# =============================================================================
# Enquiry tracking
# =============================================================================
@pytest.mark.asyncio
async def test_track_and_list_own_enquiries(client, database):
    buyer = await database.run(factories.create_user, email=ENQUIRY["email"])
    submitted = await client.post("/api/enquiries", json=ENQUIRY)
    ticket = submitted.json()["data"]["ticket_number"]

    tracked = await client.get(f"/api/enquiries/track/{ticket}")
    assert tracked.status_code == 200
    assert tracked.json()["data"]["status"] == "new"

    malformed = await client.get("/api/enquiries/track/TKT-123")
    assert malformed.status_code == 422

    unknown = await client.get("/api/enquiries/track/TKT-20000101-000000")
    assert unknown.status_code == 404

    mine = await client.get("/api/enquiries/my-enquiries", headers={"X-User-Id": str(buyer.id)})
    assert mine.status_code == 200
    items = mine.json()["data"]["items"]
    assert [item["ticket_number"] for item in items] == [ticket]

    one = await client.get(f"/api/enquiries/my-enquiries/{items[0]['id']}", headers={"X-User-Id": str(buyer.id)})
    assert one.status_code == 200
