# models/enquiry.py
from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text,
)
from sqlalchemy.orm import relationship

from idealplots.db.base_class import Base
from idealplots.db.types import BigIntPK, enum_column
from idealplots.models.enums import EnquiryPriority, EnquiryStatus


class Enquiry(Base):
    __tablename__ = "enquiries"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    ticket_number = Column(String(50), unique=True, nullable=False)

    user_id = Column(BigIntPK, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Contact details are always captured, account or not
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    requirements = Column(Text, nullable=False)

    account_creation_offered = Column(Boolean, nullable=False, default=False)
    account_created_during_enquiry = Column(Boolean, nullable=False, default=False)

    # Property context, snapshotted at intake
    property_id = Column(BigIntPK, ForeignKey("property_listings.id", ondelete="SET NULL"), nullable=True)
    property_title = Column(String(255), nullable=True)
    property_price = Column(String(100), nullable=True)

    source = Column(String(100), nullable=True)
    page_url = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)

    status = Column(enum_column(EnquiryStatus, "enquiry_status"), nullable=False, default=EnquiryStatus.NEW)
    assigned_to = Column(BigIntPK, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    priority = Column(
        enum_column(EnquiryPriority, "enquiry_priority"), nullable=False, default=EnquiryPriority.MEDIUM
    )

    first_response_at = Column(DateTime, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    resolution_notes = Column(Text, nullable=True)
    customer_satisfaction_rating = Column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "customer_satisfaction_rating IS NULL OR customer_satisfaction_rating BETWEEN 1 AND 5",
            name="chk_enquiry_satisfaction",
        ),
        CheckConstraint("status != 'resolved' OR resolved_at IS NOT NULL", name="chk_enquiry_resolved_at"),
        Index("idx_enquiries_status", "status"),
        Index("idx_enquiries_assigned_to", "assigned_to"),
        Index("idx_enquiries_email", "email"),
        Index("idx_enquiries_property", "property_id"),
    )

    user = relationship("User", foreign_keys=[user_id])
    agent = relationship("User", foreign_keys=[assigned_to])
    listing = relationship("PropertyListing", foreign_keys=[property_id])
    notes = relationship(
        "EnquiryNote",
        back_populates="enquiry",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="EnquiryNote.id",
    )
