# idealplots/schemas/enquiry.py
from datetime import date, datetime
from typing import Annotated, Optional

from pydantic import BaseModel, EmailStr, Field, StringConstraints, field_validator, model_validator

from idealplots.models.enums import CommunicationMethod, EnquiryPriority, EnquiryStatus, NoteType

Phone = Annotated[str, StringConstraints(strip_whitespace=True, min_length=7, max_length=20)]
CredentialHash = Annotated[str, StringConstraints(min_length=60, max_length=255)]

TICKET_NUMBER_PATTERN = r"^TKT-\d{8}-\d{6}$"

AGENT_SETTABLE_STATUSES = (EnquiryStatus.ASSIGNED, EnquiryStatus.IN_PROGRESS, EnquiryStatus.RESOLVED)


# --- Public submission (API) ---
class EnquirySubmission(BaseModel):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    email: EmailStr
    phone: Phone
    requirements: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    property_id: Optional[int] = None
    create_account: bool = False
    password: Optional[Annotated[str, StringConstraints(min_length=8, max_length=128)]] = None
    source: Optional[str] = Field(None, max_length=100)
    page_url: Optional[str] = None


# --- Engine input ---
class EnquiryIntake(BaseModel):
    name: str
    email: EmailStr
    phone: Phone
    requirements: str
    property_id: Optional[int] = None
    create_account: bool = False
    credential_hash: Optional[CredentialHash] = None
    source: Optional[str] = None
    page_url: Optional[str] = None
    user_agent: Optional[str] = None


class EnquiryIntakeResult(BaseModel):
    enquiry_id: int
    user_id: Optional[int]
    ticket_number: str
    account_created: bool
    assigned_to: Optional[int] = None


class EnquiryNoteCreate(BaseModel):
    note: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    note_type: NoteType = NoteType.INTERNAL
    communication_method: Optional[CommunicationMethod] = None
    next_follow_up_date: Optional[date] = None


class EnquiryPatch(BaseModel):
    """Fields an assigned agent may change; at least one is required."""

    status: Optional[EnquiryStatus] = None
    priority: Optional[EnquiryPriority] = None
    resolution_notes: Optional[str] = None
    customer_satisfaction_rating: Optional[int] = Field(None, ge=1, le=5)

    @field_validator("status")
    @classmethod
    def _agent_status(cls, value):
        if value is not None and value not in AGENT_SETTABLE_STATUSES:
            raise ValueError("status must be one of assigned, in_progress, resolved")
        return value

    @model_validator(mode="after")
    def _not_empty(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class EnquiryAssignRequest(BaseModel):
    agent_id: int
    reason: Optional[str] = None


class EnquiryNoteOut(BaseModel):
    id: int
    enquiry_id: int
    user_id: int
    note: str
    note_type: NoteType
    communication_method: Optional[CommunicationMethod]
    next_follow_up_date: Optional[date]
    created_at: datetime

    model_config = {"from_attributes": True}


class EnquiryOut(BaseModel):
    id: int
    ticket_number: str
    user_id: Optional[int]
    name: str
    email: str
    phone: str
    requirements: str
    property_id: Optional[int]
    property_title: Optional[str]
    status: EnquiryStatus
    priority: EnquiryPriority
    assigned_to: Optional[int]
    first_response_at: Optional[datetime]
    resolved_at: Optional[datetime]
    resolution_notes: Optional[str]
    customer_satisfaction_rating: Optional[int]
    account_creation_offered: bool
    account_created_during_enquiry: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class EnquiryTracking(BaseModel):
    """What a ticket holder may see without an account."""

    ticket_number: str
    status: EnquiryStatus
    priority: EnquiryPriority
    created_at: datetime
    first_response_at: Optional[datetime]
    resolved_at: Optional[datetime]
    agent_name: Optional[str] = None
    agent_phone: Optional[str] = None
