# idealplots/schemas/agent.py
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import BaseModel, EmailStr, Field, StringConstraints

from idealplots.models.enums import NotificationChannel

Phone = Annotated[str, StringConstraints(strip_whitespace=True, min_length=7, max_length=20)]


class AgentCreateRequest(BaseModel):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    email: EmailStr
    phone: Phone
    temp_password: Optional[Annotated[str, StringConstraints(min_length=8, max_length=128)]] = None
    license_number: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    agency_name: Optional[str] = Field(None, max_length=255)
    commission_rate: Decimal = Field(Decimal("2.50"), ge=0, le=100)
    experience_years: Optional[int] = Field(None, ge=0, le=80)
    specialization: Optional[str] = None
    agent_bio: Optional[str] = None


class AgentCreationResult(BaseModel):
    success: bool
    agent_id: Optional[int] = None
    notification_id: Optional[int] = None
    error: Optional[str] = None
    message: Optional[str] = None


class FirstLoginResetRequest(BaseModel):
    agent_id: int
    new_password: Annotated[str, StringConstraints(min_length=8, max_length=128)]


class FirstLoginResetResult(BaseModel):
    success: bool
    message: str


class NotificationSent(BaseModel):
    channel: NotificationChannel


class NotificationOut(BaseModel):
    id: int
    user_id: int
    created_by_admin_id: int
    email_sent: bool
    sms_sent: bool
    email_sent_at: Optional[datetime]
    sms_sent_at: Optional[datetime]
    password_reset_required: bool

    model_config = {"from_attributes": True}


class PendingNotificationRow(BaseModel):
    notification_id: int
    agent_id: int
    agent_name: str
    agent_email: str
    agent_phone: str
    license_number: Optional[str]
    agency_name: Optional[str]
    created_by_admin_name: str
    email_sent: bool
    sms_sent: bool
    password_reset_required: bool
    account_created_at: datetime
