# idealplots/routers/properties.py
from typing import Optional

from fastapi import APIRouter, Depends, Request

from idealplots.db.session import Database, get_database
from idealplots.models.enums import PropertyType
from idealplots.routers.deps import client_ip, get_actor_id, get_optional_actor_id, listing_search, page_params
from idealplots.schemas.common import ApiResponse, Page, PageParams
from idealplots.schemas.listing import (
    ActivePropertyRow, FavoriteCreate, FavoriteListingRow, FavoriteToggleResult, ListingCreate, ListingDetail,
    ListingOut, ListingSearch, ListingStatusChange, ListingUpdate, PropertyImageCreate, PropertyImageOut,
    PropertyViewCreate, ViewRecordResult,
)
from idealplots.services.dashboard_services import DashboardServices
from idealplots.services.favorite_services import FavoriteServices
from idealplots.services.listing_services import ListingServices

router = APIRouter(prefix="/api/properties", tags=["Properties"])


@router.get("/active", response_model=ApiResponse[Page[ActivePropertyRow]])
async def list_active_properties(
    city: Optional[str] = None,
    property_type: Optional[PropertyType] = None,
    params: PageParams = Depends(page_params),
    db: Database = Depends(get_database),
):
    page = await db.run(DashboardServices.active_properties, params, city, property_type)
    return ApiResponse(data=page)


@router.get("", response_model=ApiResponse[Page[ActivePropertyRow]], summary="Search active properties")
async def search_properties(
    search: ListingSearch = Depends(listing_search),
    params: PageParams = Depends(page_params),
    db: Database = Depends(get_database),
):
    page = await db.run(DashboardServices.search_properties, params, search)
    return ApiResponse(data=page)


@router.get("/favorites", response_model=ApiResponse[Page[FavoriteListingRow]])
async def list_favorites(
    params: PageParams = Depends(page_params),
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    page = await db.run(FavoriteServices.list_user_favorites, actor_id, params)
    return ApiResponse(data=page)


@router.get(
    "/{identifier}",
    response_model=ApiResponse[ListingDetail],
    summary="Property details",
    description="Looks a listing up by numeric id, listing code (e.g. APT-DX-2024-0001) or slug.",
)
async def get_property(
    identifier: str,
    viewer_id: Optional[int] = Depends(get_optional_actor_id),
    db: Database = Depends(get_database),
):
    detail = await db.run(ListingServices.get_listing_details, identifier, viewer_id)
    return ApiResponse(data=detail)


@router.post("", response_model=ApiResponse[ListingOut], status_code=201)
async def create_property(
    payload: ListingCreate,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    listing = await db.run(ListingServices.create_listing, actor_id, payload)
    return ApiResponse(data=ListingOut.model_validate(listing), message="Property created successfully")


@router.put("/{property_id}", response_model=ApiResponse[ListingOut])
async def update_property(
    property_id: int,
    payload: ListingUpdate,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    listing = await db.run(ListingServices.update_listing, actor_id, property_id, payload)
    return ApiResponse(data=ListingOut.model_validate(listing), message="Property updated successfully")


@router.post("/{property_id}/submit", response_model=ApiResponse[ListingOut])
async def submit_property(
    property_id: int,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    listing = await db.run(ListingServices.submit_listing, actor_id, property_id)
    return ApiResponse(data=ListingOut.model_validate(listing), message="Property submitted for review")


@router.put("/{property_id}/status", response_model=ApiResponse[ListingOut])
async def change_property_status(
    property_id: int,
    payload: ListingStatusChange,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    listing = await db.run(
        ListingServices.change_listing_status, actor_id, property_id, payload.status, payload.notes
    )
    return ApiResponse(data=ListingOut.model_validate(listing))


@router.delete("/{property_id}", response_model=ApiResponse[ListingOut])
async def delete_property(
    property_id: int,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    listing = await db.run(ListingServices.soft_delete_listing, actor_id, property_id)
    return ApiResponse(data=ListingOut.model_validate(listing), message="Property deleted")


# --- Favorites ---
@router.post("/{property_id}/favorite", response_model=ApiResponse[FavoriteToggleResult], status_code=201)
async def add_favorite(
    property_id: int,
    payload: Optional[FavoriteCreate] = None,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    result = await db.run(FavoriteServices.add_favorite, actor_id, property_id, payload)
    return ApiResponse(
        data=result,
        message="Property added to favorites",
    )


@router.delete("/{property_id}/favorite", response_model=ApiResponse[FavoriteToggleResult])
async def remove_favorite(
    property_id: int,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    result = await db.run(FavoriteServices.remove_favorite, actor_id, property_id)
    return ApiResponse(
        data=result,
        message="Property removed from favorites",
    )


@router.post("/{property_id}/favorite/toggle", response_model=ApiResponse[FavoriteToggleResult])
async def toggle_favorite(
    property_id: int,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    result = await db.run(FavoriteServices.toggle_favorite, actor_id, property_id)
    return ApiResponse(data=result)


# --- Views & images ---
@router.post("/{property_id}/views", response_model=ApiResponse[ViewRecordResult])
async def record_view(
    property_id: int,
    request: Request,
    payload: Optional[PropertyViewCreate] = None,
    db: Database = Depends(get_database),
):
    payload = payload or PropertyViewCreate()
    if payload.ip_address is None:
        payload = payload.model_copy(update={"ip_address": client_ip(request)})
    if payload.user_agent is None:
        payload = payload.model_copy(update={"user_agent": request.headers.get("user-agent")})
    result = await db.run(ListingServices.record_property_view, property_id, payload)
    return ApiResponse(data=result)


@router.post("/{property_id}/images", response_model=ApiResponse[PropertyImageOut], status_code=201)
async def add_image(
    property_id: int,
    payload: PropertyImageCreate,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    image = await db.run(ListingServices.add_property_image, actor_id, property_id, payload)
    return ApiResponse(data=PropertyImageOut.model_validate(image))

