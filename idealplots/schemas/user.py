# idealplots/schemas/user.py
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Optional, Set

from pydantic import BaseModel, EmailStr, Field, StringConstraints, field_validator, model_validator

from idealplots.models.enums import (
    AssignmentStatus, AssignmentType, BedroomOption, City, Gender, PreferredPropertyType, SettingType, UserRole,
    UserStatus,
)

Phone = Annotated[str, StringConstraints(strip_whitespace=True, min_length=7, max_length=20)]


class BuyerPreferences(BaseModel):
    preferred_property_types: Optional[Set[PreferredPropertyType]] = None
    preferred_cities: Optional[Set[City]] = None
    preferred_bedrooms: Optional[Set[BedroomOption]] = None
    budget_min: Optional[Decimal] = Field(None, ge=0)
    budget_max: Optional[Decimal] = Field(None, ge=0)

    @model_validator(mode="after")
    def _budget_order(self):
        if self.budget_min is not None and self.budget_max is not None and self.budget_min > self.budget_max:
            raise ValueError("budget_min must not exceed budget_max")
        return self


class UserRegistration(BuyerPreferences):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    email: EmailStr
    phone: Phone
    password: Annotated[str, StringConstraints(min_length=8, max_length=128)]
    is_buyer: bool = True
    is_seller: bool = False
    city: Optional[str] = None


class UserUpdate(BuyerPreferences):
    """Partial update; only fields present in the payload are written."""

    name: Optional[Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]] = None
    is_buyer: Optional[bool] = None
    is_seller: Optional[bool] = None
    preferred_agent_id: Optional[int] = None
    email_verified_at: Optional[datetime] = None
    phone_verified_at: Optional[datetime] = None
    profile_image: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None
    city: Optional[str] = None
    pincode: Optional[str] = Field(None, max_length=10)
    status: Optional[UserStatus] = None


class UserOut(BaseModel):
    id: int
    uuid: str
    name: str
    email: str
    phone: str
    role: UserRole
    status: UserStatus
    is_buyer: bool
    is_seller: bool
    preferred_agent_id: Optional[int]
    email_verified_at: Optional[datetime]
    phone_verified_at: Optional[datetime]
    preferred_property_types: Set[PreferredPropertyType] = set()
    preferred_cities: Set[City] = set()
    preferred_bedrooms: Set[BedroomOption] = set()
    budget_min: Optional[Decimal]
    budget_max: Optional[Decimal]
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("preferred_property_types", "preferred_cities", "preferred_bedrooms", mode="before")
    @classmethod
    def _empty_set(cls, value):
        return set() if value is None else value


class AgentAssignRequest(BaseModel):
    agent_id: int
    reason: Optional[str] = None


class AssignmentEnd(BaseModel):
    status: AssignmentStatus = AssignmentStatus.COMPLETED


class AssignmentOut(BaseModel):
    id: int
    user_id: int
    agent_id: int
    assignment_type: AssignmentType
    assignment_reason: Optional[str]
    status: AssignmentStatus
    assigned_at: datetime
    completed_at: Optional[datetime]

    model_config = {"from_attributes": True}


class UserDashboard(BaseModel):
    id: int
    name: str
    email: str
    is_buyer: bool
    is_seller: bool
    preferred_agent_id: Optional[int]
    preferred_agent_name: Optional[str]
    properties_listed: int
    properties_favorited: int
    enquiries_submitted: int
    active_listings: int
    sold_properties: int


class SettingUpdate(BaseModel):
    value: Any = None
    setting_type: Optional[SettingType] = None


class SettingOut(BaseModel):
    setting_key: str
    setting_value: Optional[str]
    setting_type: SettingType
    description: Optional[str]

    model_config = {"from_attributes": True}


class EmailVerification(BaseModel):
    token: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]


class PhoneVerification(BaseModel):
    code: Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^\d{6}$")]
