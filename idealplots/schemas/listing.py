# idealplots/schemas/listing.py
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from idealplots.models.enums import ImageType, ListingStatus, PropertyType


class ListingCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    property_type: PropertyType
    price: Decimal = Field(..., gt=0)
    area: Decimal = Field(..., gt=0)
    city: str = Field(..., min_length=2, max_length=100)
    location: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = None
    latitude: Optional[Decimal] = Field(None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(None, ge=-180, le=180)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    parking: bool = False
    furnished: bool = False
    features: Optional[Dict[str, Any]] = None
    main_image: Optional[str] = None
    slug: Optional[str] = Field(None, min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    status: ListingStatus = ListingStatus.PENDING_REVIEW

    @model_validator(mode="after")
    def _initial_status(self):
        if self.status not in (ListingStatus.DRAFT, ListingStatus.PENDING_REVIEW):
            raise ValueError("A new listing starts as draft or pending_review")
        return self


LISTING_REQUIRED_FIELDS = ("title", "description", "price", "area", "city", "location", "parking", "furnished")


class ListingUpdate(BaseModel):
    """Partial edit by the owner; only fields present in the payload are written."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[Decimal] = Field(None, gt=0)
    area: Optional[Decimal] = Field(None, gt=0)
    city: Optional[str] = Field(None, min_length=2, max_length=100)
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    address: Optional[str] = None
    latitude: Optional[Decimal] = Field(None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(None, ge=-180, le=180)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    parking: Optional[bool] = None
    furnished: Optional[bool] = None
    features: Optional[Dict[str, Any]] = None
    main_image: Optional[str] = None
    slug: Optional[str] = Field(None, min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None

    @model_validator(mode="after")
    def _not_empty(self):
        if not self.model_fields_set:
            raise ValueError("No valid update fields provided")
        cleared = [
            name for name in LISTING_REQUIRED_FIELDS
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if cleared:
            raise ValueError(f"Fields cannot be cleared: {', '.join(cleared)}")
        return self


ListingSortField = Literal["created_at", "price", "area", "price_per_area", "views_count", "favorites_count"]


class ListingSearch(BaseModel):
    """Filters over the public feed of active listings."""

    search: Optional[str] = Field(None, min_length=1, max_length=100)
    property_type: Optional[List[PropertyType]] = None
    city: Optional[List[str]] = None
    location: Optional[str] = Field(None, max_length=100)
    price_min: Optional[Decimal] = Field(None, ge=0)
    price_max: Optional[Decimal] = Field(None, ge=0)
    area_min: Optional[Decimal] = Field(None, ge=0)
    area_max: Optional[Decimal] = Field(None, ge=0)
    bedrooms: Optional[List[int]] = None
    bathrooms: Optional[int] = Field(None, ge=0)
    parking: Optional[bool] = None
    furnished: Optional[bool] = None
    sort_by: ListingSortField = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"

    @model_validator(mode="after")
    def _ranges(self):
        if self.price_min is not None and self.price_max is not None and self.price_min > self.price_max:
            raise ValueError("price_min must not exceed price_max")
        if self.area_min is not None and self.area_max is not None and self.area_min > self.area_max:
            raise ValueError("area_min must not exceed area_max")
        return self


class ListingReview(BaseModel):
    notes: Optional[str] = None


class ListingRejection(BaseModel):
    reason: str = Field(..., min_length=1)


class ListingStatusChange(BaseModel):
    status: ListingStatus
    notes: Optional[str] = None


class FavoriteCreate(BaseModel):
    notes: Optional[str] = None
    notification_preferences: Optional[Dict[str, bool]] = None


class FavoriteToggleResult(BaseModel):
    is_favorited: bool
    action: str
    favorites_count: int


class PropertyViewCreate(BaseModel):
    ip_address: Optional[str] = Field(None, min_length=3, max_length=45)
    user_id: Optional[int] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None
    referrer_url: Optional[str] = None
    time_spent_seconds: Optional[int] = Field(None, ge=0)
    scrolled_to_bottom: bool = False
    viewed_gallery: bool = False
    clicked_contact: bool = False


class ViewRecordResult(BaseModel):
    recorded: bool
    views_count: int


class PropertyImageCreate(BaseModel):
    image_url: str = Field(..., max_length=500)
    image_path: str = Field(..., max_length=500)
    original_filename: Optional[str] = None
    file_size: Optional[int] = Field(None, ge=0)
    alt_text: Optional[str] = None
    caption: Optional[str] = None
    image_type: ImageType = ImageType.GALLERY
    display_order: Optional[int] = Field(None, ge=0)


class PropertyImageOut(BaseModel):
    id: int
    property_id: int
    image_url: str
    alt_text: Optional[str]
    caption: Optional[str]
    display_order: int
    image_type: ImageType

    model_config = {"from_attributes": True}


class ListingOut(BaseModel):
    id: int
    listing_id: str
    owner_id: int
    assigned_agent_id: Optional[int]
    title: str
    description: str
    property_type: PropertyType
    price: Decimal
    area: Decimal
    price_per_area: Optional[Decimal]
    city: str
    location: str
    bedrooms: Optional[int]
    bathrooms: Optional[int]
    status: ListingStatus
    is_featured: bool
    views_count: int
    inquiries_count: int
    favorites_count: int
    slug: Optional[str]
    reviewed_by: Optional[int]
    reviewed_at: Optional[datetime]
    review_notes: Optional[str]
    rejection_reason: Optional[str]
    approved_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class ScoredListing(BaseModel):
    score: int
    listing: ListingOut


class ActivePropertyRow(BaseModel):
    id: int
    listing_id: str
    title: str
    property_type: PropertyType
    price: Decimal
    area: Decimal
    price_per_area: Optional[Decimal]
    city: str
    location: str
    bedrooms: Optional[int]
    bathrooms: Optional[int]
    is_featured: bool
    views_count: int
    inquiries_count: int
    favorites_count: int
    slug: Optional[str]
    created_at: datetime
    owner_name: Optional[str]
    owner_email: Optional[str]
    owner_phone: Optional[str]
    owner_is_seller: Optional[bool]
    agent_name: Optional[str]
    agent_email: Optional[str]
    agent_phone: Optional[str]
    agency_name: Optional[str]
    agent_rating: Optional[Decimal]


class ListingDetail(ListingOut):
    address: Optional[str]
    latitude: Optional[Decimal]
    longitude: Optional[Decimal]
    parking: bool
    furnished: bool
    features: Optional[Dict[str, Any]]
    main_image: Optional[str]
    meta_title: Optional[str]
    meta_description: Optional[str]
    published_at: Optional[datetime]
    owner_name: Optional[str] = None
    owner_phone: Optional[str] = None
    owner_email: Optional[str] = None
    agent_name: Optional[str] = None
    agent_phone: Optional[str] = None
    agency_name: Optional[str] = None
    images: List[PropertyImageOut] = []
    is_favorited: Optional[bool] = None


class FavoriteListingRow(BaseModel):
    id: int
    listing_id: str
    title: str
    property_type: PropertyType
    price: Decimal
    area: Decimal
    city: str
    location: str
    bedrooms: Optional[int]
    bathrooms: Optional[int]
    main_image: Optional[str]
    views_count: int
    favorites_count: int
    status: ListingStatus
    user_notes: Optional[str]
    favorited_at: datetime
    owner_name: Optional[str]
    owner_phone: Optional[str]

class ReconciliationReport(BaseModel):
    checked: int
    drifted: List[Dict[str, int]]
    fixed: bool
