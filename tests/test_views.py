import json
from decimal import Decimal

import pytest

from idealplots.core.exceptions import AuthorizationError, NotFoundError
from idealplots.crud import approvals as approval_crud
from idealplots.models import UserVerification
from idealplots.models.enums import ApprovalPriority, ApprovalType, ListingStatus, PropertyType
from idealplots.schemas.agent import AgentCreateRequest
from idealplots.schemas.common import PageParams
from idealplots.schemas.listing import FavoriteCreate, ListingCreate, ListingSearch, PropertyImageCreate
from idealplots.services.agent_services import AgentServices
from idealplots.services.dashboard_services import DashboardServices, dashboard_cache_key
from idealplots.services.favorite_services import FavoriteServices
from idealplots.services.listing_services import ListingServices
from tests import factories


# =============================================================================
# Listing feed
# =============================================================================
@pytest.mark.asyncio
async def test_active_properties_feed(database):
    agent = await database.run(factories.create_agent, name="Suresh")
    owner = await database.run(factories.create_user, name="Owner One")
    featured = await database.run(factories.create_listing, owner.id, is_featured=True, assigned_agent_id=agent.id)
    plain = await database.run(factories.create_listing, owner.id, city="Thrissur")
    await database.run(factories.create_listing, owner.id, status=ListingStatus.DRAFT)

    page = await database.run(DashboardServices.active_properties, PageParams(page=1, limit=20))

    assert [item.id for item in page.items] == [featured.id, plain.id]
    assert page.items[0].owner_name == "Owner One"
    assert page.items[0].agent_name == "Suresh"
    assert page.items[1].agent_name is None
    assert page.pagination.total == 2

    filtered = await database.run(
        DashboardServices.active_properties, PageParams(page=1, limit=20), "Thrissur", PropertyType.APARTMENT
    )
    assert [item.id for item in filtered.items] == [plain.id]


# =============================================================================
# Approval queue
# =============================================================================
@pytest.mark.asyncio
async def test_pending_approvals_queue(database):
    admin = await database.run(factories.create_admin)
    owner = await database.run(factories.create_user, name="Priya")
    applicant = await database.run(factories.create_user, name="Kiran")
    listing = await database.run(
        ListingServices.create_listing,
        owner.id,
        ListingCreate(
            title="Plot near Infopark",
            description="Corner plot",
            property_type=PropertyType.RESIDENTIAL_PLOT,
            price=Decimal("1500000"),
            area=Decimal("600"),
            city="Kochi",
            location="Kakkanad",
        ),
    )
    await database.run(
        approval_crud.create_approval,
        UserVerification(applicant.id),
        submitted_by=applicant.id,
        priority=ApprovalPriority.URGENT,
    )
    # approved on creation; never in the queue
    await database.run(
        AgentServices.admin_create_agent,
        admin.id,
        AgentCreateRequest(
            name="New Agent",
            email="new@agents.in",
            phone="+919811111111",
            temp_password="Temp@12345",
            license_number="L-1",
        ),
        factories.H60,
    )

    page = await database.run(DashboardServices.pending_approvals, admin.id, PageParams(page=1, limit=20))

    assert [(item.approval_type, item.item_title) for item in page.items] == [
        (ApprovalType.USER_VERIFICATION, "User: Kiran"),
        (ApprovalType.PROPERTY_LISTING, "Plot near Infopark"),
    ]
    assert page.items[1].record_id == listing.id
    assert page.items[1].submitted_by_name == "Priya"

    with pytest.raises(AuthorizationError):
        await database.run(DashboardServices.pending_approvals, owner.id, PageParams(page=1, limit=20))


@pytest.mark.asyncio
async def test_pending_notifications_queue(database):
    admin = await database.run(factories.create_admin, name="Root")
    created = await database.run(
        AgentServices.admin_create_agent,
        admin.id,
        AgentCreateRequest(
            name="Asha",
            email="asha@agents.in",
            phone="+919822222222",
            temp_password="Temp@12345",
            license_number="L-2",
        ),
        factories.H60,
    )

    page = await database.run(DashboardServices.pending_notifications, admin.id, PageParams(page=1, limit=50))

    assert len(page.items) == 1
    row = page.items[0]
    assert row.notification_id == created.notification_id
    assert row.agent_name == "Asha"
    assert row.created_by_admin_name == "Root"


# =============================================================================
# User dashboard
# =============================================================================
@pytest.mark.asyncio
async def test_user_dashboard_is_computed_and_cached(database, fake_redis):
    agent = await database.run(factories.create_agent, name="Devika")
    user = await database.run(factories.create_user, is_seller=True, preferred_agent_id=agent.id)
    other = await database.run(factories.create_user)
    await database.run(factories.create_listing, user.id)
    await database.run(factories.create_listing, user.id, status=ListingStatus.SOLD)
    liked = await database.run(factories.create_listing, other.id)
    await database.run(FavoriteServices.add_favorite, user.id, liked.id)

    dashboard = await database.run(DashboardServices.get_user_dashboard, user.id, user.id, fake_redis)

    assert dashboard.properties_listed == 2
    assert dashboard.active_listings == 1
    assert dashboard.sold_properties == 1
    assert dashboard.properties_favorited == 1
    assert dashboard.enquiries_submitted == 0
    assert dashboard.preferred_agent_name == "Devika"

    fake_redis.set.assert_awaited_once()
    key, payload = fake_redis.set.await_args.args
    assert key == dashboard_cache_key(user.id)
    assert json.loads(payload)["properties_listed"] == 2


@pytest.mark.asyncio
async def test_user_dashboard_served_from_cache(database, fake_redis):
    user = await database.run(factories.create_user)
    cached = {
        "id": user.id, "name": "Cached", "email": user.email, "is_buyer": True, "is_seller": False,
        "preferred_agent_id": None, "preferred_agent_name": None, "properties_listed": 7,
        "properties_favorited": 0, "enquiries_submitted": 0, "active_listings": 7, "sold_properties": 0,
    }
    fake_redis.get.return_value = json.dumps(cached)

    dashboard = await database.run(DashboardServices.get_user_dashboard, user.id, user.id, fake_redis)

    assert dashboard.properties_listed == 7
    fake_redis.set.assert_not_awaited()


@pytest.mark.asyncio
async def test_dashboard_access_rules(database, fake_redis):
    user = await database.run(factories.create_user)
    other = await database.run(factories.create_user)
    admin = await database.run(factories.create_admin)
    agent = await database.run(factories.create_agent)

    with pytest.raises(AuthorizationError):
        await database.run(DashboardServices.get_user_dashboard, other.id, user.id, fake_redis)

    dashboard = await database.run(DashboardServices.get_user_dashboard, admin.id, user.id, fake_redis)
    assert dashboard.id == user.id

    with pytest.raises(NotFoundError):
        await database.run(DashboardServices.get_user_dashboard, agent.id, agent.id, fake_redis)


# =============================================================================
# Search & detail
# =============================================================================
@pytest.fixture
def search_page():
    return PageParams(page=1, limit=20)


@pytest.mark.asyncio
async def test_search_filters_and_sorting(database, search_page):
    owner = await database.run(factories.create_user)
    flat = await database.run(
        factories.create_listing, owner.id,
        title="Backwater facing flat", description="Two bedrooms near the metro", bedrooms=2,
    )
    villa = await database.run(
        factories.create_listing, owner.id,
        title="Temple town villa", description="Courtyard house", city="Thrissur",
        property_type=PropertyType.VILLA, price=Decimal("9000000"), area=Decimal("3000"),
        bedrooms=4, furnished=True,
    )
    plot = await database.run(
        factories.create_listing, owner.id,
        title="Open plot", description="Clear title land", property_type=PropertyType.RESIDENTIAL_PLOT,
        price=Decimal("1500000"), area=Decimal("5000"),
    )
    await database.run(
        factories.create_listing, owner.id,
        title="Backwater draft", description="Not live yet", status=ListingStatus.DRAFT,
    )

    async def search(**filters):
        page = await database.run(DashboardServices.search_properties, search_page, ListingSearch(**filters))
        return [item.id for item in page.items]

    assert await search(search="backwater") == [flat.id]
    assert await search(search=flat.listing_id) == [flat.id]
    in_two_cities = await search(
        city=["Kochi", "Thrissur"], price_min=Decimal("2000000"), sort_by="price", sort_order="asc"
    )
    assert in_two_cities == [flat.id, villa.id]
    assert await search(
        property_type=[PropertyType.VILLA, PropertyType.RESIDENTIAL_PLOT], sort_by="price", sort_order="desc"
    ) == [villa.id, plot.id]
    assert await search(bedrooms=[2, 4], furnished=True) == [villa.id]
    assert await search(area_max=Decimal("1200")) == [flat.id]
    assert await search(sort_by="price_per_area", sort_order="asc") == [plot.id, flat.id, villa.id]


def test_search_rejects_inverted_ranges():
    with pytest.raises(ValueError):
        ListingSearch(price_min=Decimal("5000000"), price_max=Decimal("1000000"))
    with pytest.raises(ValueError):
        ListingSearch(area_min=Decimal("10"), area_max=Decimal("1"))


@pytest.mark.asyncio
async def test_listing_details_by_id_code_or_slug(database):
    agent = await database.run(factories.create_agent, name="Suresh", agency_name="Coastal Realty")
    owner = await database.run(factories.create_user, name="Owner One")
    buyer = await database.run(factories.create_user)
    listing = await database.run(
        factories.create_listing, owner.id, slug="kakkanad-flat", assigned_agent_id=agent.id
    )
    await database.run(
        ListingServices.add_property_image, owner.id, listing.id,
        PropertyImageCreate(image_url="https://cdn.example.com/front.jpg", image_path="listings/front.jpg"),
    )

    for identifier in (str(listing.id), listing.listing_id, "kakkanad-flat"):
        detail = await database.run(ListingServices.get_listing_details, identifier)
        assert detail.id == listing.id

    assert detail.owner_name == "Owner One"
    assert detail.agent_name == "Suresh"
    assert detail.agency_name == "Coastal Realty"
    assert [image.image_url for image in detail.images] == ["https://cdn.example.com/front.jpg"]
    assert detail.is_favorited is None

    await database.run(FavoriteServices.add_favorite, buyer.id, listing.id)
    detail = await database.run(ListingServices.get_listing_details, "kakkanad-flat", buyer.id)
    assert detail.is_favorited is True
    assert detail.favorites_count == 1

    with pytest.raises(NotFoundError):
        await database.run(ListingServices.get_listing_details, "no-such-listing")


@pytest.mark.asyncio
async def test_unpublished_listing_is_visible_to_owner_and_admins_only(database):
    owner = await database.run(factories.create_user)
    stranger = await database.run(factories.create_user)
    admin = await database.run(factories.create_admin)
    draft = await database.run(factories.create_listing, owner.id, status=ListingStatus.DRAFT)

    for viewer_id in (None, stranger.id):
        with pytest.raises(NotFoundError):
            await database.run(ListingServices.get_listing_details, draft.listing_id, viewer_id)

    for viewer_id in (owner.id, admin.id):
        detail = await database.run(ListingServices.get_listing_details, draft.listing_id, viewer_id)
        assert detail.status == ListingStatus.DRAFT


@pytest.mark.asyncio
async def test_user_favorites_list(database, search_page):
    owner = await database.run(factories.create_user, name="Owner One")
    buyer = await database.run(factories.create_user)
    first = await database.run(factories.create_listing, owner.id)
    second = await database.run(factories.create_listing, owner.id)
    gone = await database.run(factories.create_listing, owner.id)

    await database.run(FavoriteServices.add_favorite, buyer.id, first.id, FavoriteCreate(notes="Call on Monday"))
    await database.run(FavoriteServices.add_favorite, buyer.id, second.id)
    await database.run(FavoriteServices.add_favorite, buyer.id, gone.id)
    await database.run(ListingServices.soft_delete_listing, owner.id, gone.id)

    page = await database.run(FavoriteServices.list_user_favorites, buyer.id, search_page)

    assert [item.id for item in page.items] == [second.id, first.id]
    assert page.items[1].user_notes == "Call on Monday"
    assert page.items[0].owner_name == "Owner One"
    assert page.pagination.total == 2
