# models/user_favorite.py
from sqlalchemy import JSON, Column, ForeignKey, Index, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from idealplots.db.base_class import Base
from idealplots.db.types import BigIntPK

DEFAULT_NOTIFICATION_PREFERENCES = {
    "price_change": True,
    "status_change": True,
    "similar_properties": False,
}


class UserFavorite(Base):
    __tablename__ = "user_favorites"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    property_id = Column(BigIntPK, ForeignKey("property_listings.id", ondelete="CASCADE"), nullable=False)

    notes = Column(Text, nullable=True)
    notification_preferences = Column(
        JSON, nullable=True, default=lambda: dict(DEFAULT_NOTIFICATION_PREFERENCES)
    )

    __table_args__ = (
        UniqueConstraint("user_id", "property_id", name="uq_user_favorites_user_property"),
        Index("idx_user_favorites_property", "property_id"),
    )

    user = relationship("User", back_populates="favorites")
    listing = relationship("PropertyListing", back_populates="favorites")
