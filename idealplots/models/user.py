# models/user.py
from uuid import uuid4

from sqlalchemy import (
    Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer,
    Numeric, String, Text,
)
from sqlalchemy.orm import relationship

from idealplots.db.base_class import Base
from idealplots.db.types import BigIntPK, EnumSet, enum_column
from idealplots.models.enums import (
    BedroomOption, City, Gender, PreferredPropertyType, UserRole, UserStatus,
)


class User(Base):
    __tablename__ = "users"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    uuid = Column(String(36), unique=True, nullable=False, default=lambda: str(uuid4()))

    # Basic information
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(20), unique=True, nullable=False)
    credential_hash = Column(String(255), nullable=False)

    # Role & status
    role = Column(enum_column(UserRole, "user_role"), nullable=False, default=UserRole.USER)
    status = Column(
        enum_column(UserStatus, "user_status"),
        nullable=False,
        default=UserStatus.PENDING_VERIFICATION,
    )
    email_verified_at = Column(DateTime, nullable=True)
    phone_verified_at = Column(DateTime, nullable=True)

    # Capabilities
    is_buyer = Column(Boolean, nullable=False, default=True)
    is_seller = Column(Boolean, nullable=False, default=False)
    preferred_agent_id = Column(
        BigIntPK,
        ForeignKey("users.id", ondelete="SET NULL", use_alter=True, name="fk_users_preferred_agent"),
        nullable=True,
    )

    # Profile
    profile_image = Column(String(500), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(enum_column(Gender, "user_gender"), nullable=True)

    # Buyer preferences
    preferred_property_types = Column(EnumSet(PreferredPropertyType), nullable=True)
    preferred_cities = Column(EnumSet(City), nullable=True)
    preferred_bedrooms = Column(EnumSet(BedroomOption), nullable=True)
    budget_min = Column(Numeric(15, 2), nullable=True)
    budget_max = Column(Numeric(15, 2), nullable=True)

    # Address
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True, default="Kerala")
    pincode = Column(String(10), nullable=True)

    # Agent profile
    license_number = Column(String(100), nullable=True)
    commission_rate = Column(Numeric(5, 2), nullable=True, default=2.50)
    agency_name = Column(String(255), nullable=True)
    experience_years = Column(Integer, nullable=True)
    specialization = Column(Text, nullable=True)
    agent_bio = Column(Text, nullable=True)
    agent_rating = Column(Numeric(3, 2), nullable=False, default=0)
    total_sales = Column(Integer, nullable=False, default=0)

    # Security
    email_verification_token = Column(String(100), nullable=True)
    phone_verification_code = Column(String(10), nullable=True)
    last_login_at = Column(DateTime, nullable=True)
    login_attempts = Column(Integer, nullable=False, default=0)
    locked_until = Column(DateTime, nullable=True)

    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("length(credential_hash) >= 60", name="chk_credential_length"),
        CheckConstraint("role != 'agent' OR license_number IS NOT NULL", name="chk_agent_license"),
        CheckConstraint("agent_rating >= 0 AND agent_rating <= 5", name="chk_agent_rating"),
        Index("idx_users_role_status", "role", "status"),
        Index("idx_users_preferred_agent", "preferred_agent_id"),
        Index("idx_users_city", "city"),
    )

    # Relationships
    preferred_agent = relationship("User", remote_side=[id], foreign_keys=[preferred_agent_id])
    listings = relationship(
        "PropertyListing",
        back_populates="owner",
        foreign_keys="PropertyListing.owner_id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    favorites = relationship("UserFavorite", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_active_admin(self) -> bool:
        return self.is_admin and self.status == UserStatus.ACTIVE and self.deleted_at is None
