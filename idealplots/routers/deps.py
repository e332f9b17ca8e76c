# idealplots/routers/deps.py
from decimal import Decimal
from typing import List, Optional

from fastapi import Header, Query, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError

from idealplots.core.exceptions import AuthorizationError
from idealplots.models.enums import PropertyType
from idealplots.schemas.common import PageParams
from idealplots.schemas.listing import ListingSearch, ListingSortField


async def get_actor_id(x_user_id: Optional[int] = Header(None, alias="X-User-Id")) -> int:
    """
    Acting user id. Authentication itself lives in front of this service;
    it forwards the authenticated user in the X-User-Id header.
    """
    if x_user_id is None:
        raise AuthorizationError("Missing X-User-Id header")
    return x_user_id


async def get_optional_actor_id(x_user_id: Optional[int] = Header(None, alias="X-User-Id")) -> Optional[int]:
    return x_user_id


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def page_params(
    page: int = Query(1, ge=1, description="Page number, starting at 1"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> PageParams:
    return PageParams(page=page, limit=limit)


def listing_search(
    search: Optional[str] = Query(None, description="Matches title, description, location or listing id"),
    property_type: Optional[List[PropertyType]] = Query(None),
    city: Optional[List[str]] = Query(None),
    location: Optional[str] = None,
    price_min: Optional[Decimal] = None,
    price_max: Optional[Decimal] = None,
    area_min: Optional[Decimal] = None,
    area_max: Optional[Decimal] = None,
    bedrooms: Optional[List[int]] = Query(None),
    bathrooms: Optional[int] = Query(None, description="Minimum number of bathrooms"),
    parking: Optional[bool] = None,
    furnished: Optional[bool] = None,
    sort_by: ListingSortField = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
) -> ListingSearch:
    try:
        return ListingSearch(
            search=search,
            property_type=property_type,
            city=city,
            location=location,
            price_min=price_min,
            price_max=price_max,
            area_min=area_min,
            area_max=area_max,
            bedrooms=bedrooms,
            bathrooms=bathrooms,
            parking=parking,
            furnished=furnished,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except PydanticValidationError as exc:
        raise RequestValidationError(exc.errors(include_context=False)) from exc
