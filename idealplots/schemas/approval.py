# idealplots/schemas/approval.py
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel

from idealplots.models.enums import ApprovalPriority, ApprovalStatus, ApprovalType


class PendingApprovalRow(BaseModel):
    id: int
    approval_type: ApprovalType
    record_id: int
    table_name: str
    status: ApprovalStatus
    priority: ApprovalPriority
    submission_data: Optional[Dict[str, Any]]
    created_at: datetime
    review_deadline: Optional[datetime]
    submitted_by_name: Optional[str]
    submitted_by_email: Optional[str]
    reviewer_name: Optional[str]
    item_title: Optional[str]
