# models/property_listing.py
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, JSON,
    Numeric, String, Text, event, func, literal_column,
)
from sqlalchemy.orm import relationship

from idealplots.db.base_class import Base
from idealplots.db.types import BigIntPK, enum_column
from idealplots.models.enums import ListingStatus, PropertyType

# Inline SQL literals so a query repeats the indexed expression exactly.
_SEARCH_CONFIG = literal_column("'simple'")
_SPACE = literal_column("' '", String)


def search_vector(title, description, location):
    """tsvector over the searchable text of a listing; matches idx_listings_fulltext."""
    return func.to_tsvector(_SEARCH_CONFIG, title + _SPACE + description + _SPACE + location)


def search_query(term: str):
    return func.plainto_tsquery(_SEARCH_CONFIG, term)


class PropertyListing(Base):
    __tablename__ = "property_listings"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    listing_id = Column(String(50), unique=True, nullable=False)

    # Ownership & assignment
    owner_id = Column(BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    assigned_agent_id = Column(BigIntPK, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Description
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    property_type = Column(enum_column(PropertyType, "property_type"), nullable=False)

    # Pricing & area
    price = Column(Numeric(15, 2), nullable=False)
    area = Column(Numeric(10, 2), nullable=False)
    price_per_area = Column(Numeric(15, 2), nullable=True)

    # Location
    city = Column(String(100), nullable=False)
    location = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    latitude = Column(Numeric(10, 8), nullable=True)
    longitude = Column(Numeric(11, 8), nullable=True)

    # Layout & amenities
    bedrooms = Column(Integer, nullable=True)
    bathrooms = Column(Integer, nullable=True)
    parking = Column(Boolean, nullable=False, default=False)
    furnished = Column(Boolean, nullable=False, default=False)
    features = Column(JSON, nullable=True)
    main_image = Column(String(500), nullable=True)

    # Workflow
    status = Column(
        enum_column(ListingStatus, "listing_status"),
        nullable=False,
        default=ListingStatus.PENDING_REVIEW,
    )
    reviewed_by = Column(BigIntPK, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    review_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    # Marketing & counters
    is_featured = Column(Boolean, nullable=False, default=False)
    featured_until = Column(DateTime, nullable=True)
    views_count = Column(Integer, nullable=False, default=0)
    inquiries_count = Column(Integer, nullable=False, default=0)
    favorites_count = Column(Integer, nullable=False, default=0)

    # SEO
    slug = Column(String(255), unique=True, nullable=True)
    meta_title = Column(String(255), nullable=True)
    meta_description = Column(Text, nullable=True)

    approved_at = Column(DateTime, nullable=True)
    published_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("price > 0", name="chk_listing_price"),
        CheckConstraint("area > 0", name="chk_listing_area"),
        CheckConstraint("favorites_count >= 0", name="chk_listing_favorites_count"),
        Index("idx_listings_status_deleted", "status", "deleted_at"),
        Index("idx_listings_owner", "owner_id"),
        Index("idx_listings_city_type", "city", "property_type"),
        Index("idx_listings_price", "price"),
        Index(
            "idx_listings_fulltext",
            search_vector(title, description, location),
            postgresql_using="gin",
        ).ddl_if(dialect="postgresql"),
    )

    # Relationships
    owner = relationship("User", back_populates="listings", foreign_keys=[owner_id])
    assigned_agent = relationship("User", foreign_keys=[assigned_agent_id])
    reviewer = relationship("User", foreign_keys=[reviewed_by])
    favorites = relationship(
        "UserFavorite", back_populates="listing", cascade="all, delete-orphan", passive_deletes=True
    )
    images = relationship(
        "PropertyImage",
        back_populates="listing",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PropertyImage.display_order",
    )
    views = relationship("PropertyView", back_populates="listing", cascade="all, delete-orphan", passive_deletes=True)


_CENTS = Decimal("0.01")


def compute_price_per_area(price, area):
    if price is None or not area:
        return None
    return (Decimal(str(price)) / Decimal(str(area))).quantize(_CENTS, rounding=ROUND_HALF_UP)


@event.listens_for(PropertyListing, "before_insert")
@event.listens_for(PropertyListing, "before_update")
def materialize_price_per_area(mapper, connection, target):
    target.price_per_area = compute_price_per_area(target.price, target.area)
