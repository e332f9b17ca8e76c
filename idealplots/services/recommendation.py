# idealplots/services/recommendation.py
import logging
from typing import List

from sqlalchemy import and_, case, literal, select
from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.core.exceptions import NotFoundError
from idealplots.crud import users as user_crud
from idealplots.models import PropertyListing, User, UserFavorite
from idealplots.models.enums import ListingStatus, PropertyType
from idealplots.schemas.listing import ListingOut, ScoredListing

logger = logging.getLogger(__name__)

CITY_WEIGHT = 20
TYPE_WEIGHT = 20
BUDGET_WEIGHT = 30
FEATURED_WEIGHT = 10


def score_expression(user: User):
    """
    SQL expression scoring one listing for `user`:
    +20 preferred city, +20 preferred type, +30 within budget, +10 featured.
    A missing budget bound is open on that side.
    """
    terms = []

    cities = [city.value for city in (user.preferred_cities or ())]
    if cities:
        terms.append(case((PropertyListing.city.in_(cities), CITY_WEIGHT), else_=0))

    preferred_types = set(user.preferred_property_types or ())
    listing_types = [t for t in PropertyType if t.preference in preferred_types]
    if listing_types:
        terms.append(case((PropertyListing.property_type.in_(listing_types), TYPE_WEIGHT), else_=0))

    budget = []
    if user.budget_min is not None:
        budget.append(PropertyListing.price >= user.budget_min)
    if user.budget_max is not None:
        budget.append(PropertyListing.price <= user.budget_max)
    terms.append(case((and_(*budget), BUDGET_WEIGHT), else_=0) if budget else literal(BUDGET_WEIGHT))

    terms.append(case((PropertyListing.is_featured.is_(True), FEATURED_WEIGHT), else_=0))

    score = terms[0]
    for term in terms[1:]:
        score = score + term
    return score


class RecommendationEngine:

    @staticmethod
    async def get_recommendations(db: AsyncSession, user_id: int, limit: int = 10) -> List[ScoredListing]:
        """
        Rank active listings for a user by how well they match the user's
        stored preferences.

        Workflow:
        1. Load the user; soft-deleted users have no recommendations.
        2. Score every active, non-deleted listing the user has not favorited.
        3. Order by score, newest first on ties, then id for a stable order.
        """

        # 1. --- User ---
        user = await user_crud.get_user(db, user_id)
        if user is None or user.deleted_at is not None:
            raise NotFoundError("User not found")

        # 2. --- Score ---
        score = score_expression(user).label("score")
        favorited = select(UserFavorite.property_id).where(UserFavorite.user_id == user.id)
        stmt = (
            select(PropertyListing, score)
            .where(
                PropertyListing.status == ListingStatus.ACTIVE,
                PropertyListing.deleted_at.is_(None),
                PropertyListing.id.not_in(favorited),
            )
            # 3. --- Order ---
            .order_by(score.desc(), PropertyListing.created_at.desc(), PropertyListing.id.desc())
            .limit(limit)
        )
        result = await db.execute(stmt)

        recommendations = [
            ScoredListing(score=int(row.score), listing=ListingOut.model_validate(row.PropertyListing))
            for row in result
        ]
        logger.info("%s recommendations computed for user %s", len(recommendations), user.id)
        return recommendations
