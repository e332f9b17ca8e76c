# models/property_view.py
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from idealplots.db.base_class import Base, utcnow
from idealplots.db.types import BigIntPK


class PropertyView(Base):
    __tablename__ = "property_views"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    property_id = Column(BigIntPK, ForeignKey("property_listings.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(BigIntPK, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    ip_address = Column(String(45), nullable=False)
    user_agent = Column(Text, nullable=True)
    viewed_at = Column(DateTime, nullable=False, default=utcnow)
    session_id = Column(String(255), nullable=True)
    referrer_url = Column(Text, nullable=True)
    time_spent_seconds = Column(Integer, nullable=True)

    # Interest indicators
    scrolled_to_bottom = Column(Boolean, nullable=False, default=False)
    viewed_gallery = Column(Boolean, nullable=False, default=False)
    clicked_contact = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_property_views_property_ip", "property_id", "ip_address", "viewed_at"),
    )

    listing = relationship("PropertyListing", back_populates="views")
