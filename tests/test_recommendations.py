from decimal import Decimal

import pytest

from idealplots.core.exceptions import NotFoundError
from idealplots.models.enums import City, ListingStatus, PreferredPropertyType, PropertyType
from idealplots.services.favorite_services import FavoriteServices
from idealplots.services.recommendation import RecommendationEngine
from tests import factories


async def kochi_apartment_buyer(database):
    return await database.run(
        factories.create_user,
        preferred_cities={City.KOCHI},
        preferred_property_types={PreferredPropertyType.APARTMENT},
        budget_min=Decimal("2000000"),
        budget_max=Decimal("4000000"),
    )


@pytest.mark.asyncio
async def test_scores_and_order(database):
    owner = await database.run(factories.create_user)
    buyer = await kochi_apartment_buyer(database)
    perfect = await database.run(
        factories.create_listing, owner.id, city="Kochi", property_type=PropertyType.APARTMENT,
        price=Decimal("3000000"), is_featured=True,
    )
    type_only = await database.run(
        factories.create_listing, owner.id, city="Thrissur", property_type=PropertyType.APARTMENT,
        price=Decimal("9000000"),
    )
    city_and_budget = await database.run(
        factories.create_listing, owner.id, city="Kochi", property_type=PropertyType.VILLA,
        price=Decimal("3500000"),
    )

    results = await database.run(RecommendationEngine.get_recommendations, buyer.id)

    assert [(r.listing.id, r.score) for r in results] == [
        (perfect.id, 80),
        (city_and_budget.id, 50),
        (type_only.id, 20),
    ]


@pytest.mark.asyncio
async def test_listing_types_match_preference_buckets(database):
    owner = await database.run(factories.create_user)
    buyer = await database.run(
        factories.create_user, preferred_property_types={PreferredPropertyType.PLOT}, budget_max=Decimal("100"),
    )
    plot = await database.run(factories.create_listing, owner.id, property_type=PropertyType.RESIDENTIAL_PLOT)

    results = await database.run(RecommendationEngine.get_recommendations, buyer.id)

    assert [(r.listing.id, r.score) for r in results] == [(plot.id, 20)]


@pytest.mark.asyncio
async def test_excludes_favorited_and_inactive(database):
    owner = await database.run(factories.create_user)
    buyer = await kochi_apartment_buyer(database)
    favorited = await database.run(factories.create_listing, owner.id)
    await database.run(factories.create_listing, owner.id, status=ListingStatus.SOLD)
    remaining = await database.run(factories.create_listing, owner.id)
    await database.run(FavoriteServices.add_favorite, buyer.id, favorited.id)

    results = await database.run(RecommendationEngine.get_recommendations, buyer.id)

    assert [r.listing.id for r in results] == [remaining.id]


@pytest.mark.asyncio
async def test_ties_are_deterministic_and_limited(database):
    owner = await database.run(factories.create_user)
    buyer = await database.run(factories.create_user)
    listings = [await database.run(factories.create_listing, owner.id) for _ in range(4)]

    first = await database.run(RecommendationEngine.get_recommendations, buyer.id, 3)
    second = await database.run(RecommendationEngine.get_recommendations, buyer.id, 3)

    assert [r.listing.id for r in first] == [r.listing.id for r in second]
    assert len(first) == 3
    # no preferences: every listing is inside an open budget
    assert {r.score for r in first} == {30}
    assert {r.listing.id for r in first} <= {listing.id for listing in listings}


@pytest.mark.asyncio
async def test_unknown_user(database):
    with pytest.raises(NotFoundError):
        await database.run(RecommendationEngine.get_recommendations, 999)
