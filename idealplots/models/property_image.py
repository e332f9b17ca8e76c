# models/property_image.py
from sqlalchemy import Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from idealplots.db.base_class import Base
from idealplots.db.types import BigIntPK, enum_column
from idealplots.models.enums import ImageType


class PropertyImage(Base):
    __tablename__ = "property_images"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    property_id = Column(BigIntPK, ForeignKey("property_listings.id", ondelete="CASCADE"), nullable=False)

    image_url = Column(String(500), nullable=False)
    image_path = Column(String(500), nullable=False)
    original_filename = Column(String(255), nullable=True)
    file_size = Column(Integer, nullable=True)

    alt_text = Column(String(255), nullable=True)
    caption = Column(Text, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    image_type = Column(enum_column(ImageType, "image_type"), nullable=False, default=ImageType.GALLERY)

    __table_args__ = (
        Index("idx_property_images_property_order", "property_id", "display_order"),
    )

    listing = relationship("PropertyListing", back_populates="images")
