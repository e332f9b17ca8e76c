# models/pending_approval.py
from dataclasses import dataclass
from typing import Tuple, Union

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import relationship

from idealplots.db.base_class import Base
from idealplots.db.types import BigIntPK, enum_column
from idealplots.models.enums import ApprovalPriority, ApprovalStatus, ApprovalType

_OPEN_APPROVAL = text("status IN ('pending', 'under_review')")


@dataclass(frozen=True)
class ListingApproval:
    listing_id: int
    table_name = "property_listings"


@dataclass(frozen=True)
class UserVerification:
    user_id: int
    table_name = "users"


@dataclass(frozen=True)
class AgentApplication:
    user_id: int
    table_name = "users"


ApprovalTarget = Union[ListingApproval, UserVerification, AgentApplication]

_TARGET_TYPES = {
    ListingApproval: ApprovalType.PROPERTY_LISTING,
    UserVerification: ApprovalType.USER_VERIFICATION,
    AgentApplication: ApprovalType.AGENT_APPLICATION,
}


class PendingApproval(Base):
    """
    An entry in the admin review queue.

    The referenced record is stored as (approval_type, record_id, table_name);
    code should go through `target`, which returns one of the three
    `ApprovalTarget` variants, rather than reading the raw columns.
    """

    __tablename__ = "pending_approvals"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    approval_type = Column(enum_column(ApprovalType, "approval_type"), nullable=False)
    record_id = Column(BigIntPK, nullable=False)
    table_name = Column(String(100), nullable=False)

    submitted_by = Column(BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    submission_data = Column(JSON, nullable=True)

    status = Column(enum_column(ApprovalStatus, "approval_status"), nullable=False, default=ApprovalStatus.PENDING)
    priority = Column(
        enum_column(ApprovalPriority, "approval_priority"), nullable=False, default=ApprovalPriority.NORMAL
    )

    assigned_reviewer = Column(BigIntPK, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    review_started_at = Column(DateTime, nullable=True)
    review_deadline = Column(DateTime, nullable=True)

    approved_by = Column(BigIntPK, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)
    changes_requested = Column(Text, nullable=True)

    __table_args__ = (
        Index(
            "uq_pending_approvals_open_record",
            "approval_type",
            "record_id",
            unique=True,
            postgresql_where=_OPEN_APPROVAL,
            sqlite_where=_OPEN_APPROVAL,
        ),
        Index("idx_pending_approvals_status_priority", "status", "priority"),
    )

    submitter = relationship("User", foreign_keys=[submitted_by])
    reviewer = relationship("User", foreign_keys=[assigned_reviewer])
    approver = relationship("User", foreign_keys=[approved_by])

    @property
    def target(self) -> ApprovalTarget:
        if self.approval_type == ApprovalType.PROPERTY_LISTING:
            return ListingApproval(self.record_id)
        if self.approval_type == ApprovalType.USER_VERIFICATION:
            return UserVerification(self.record_id)
        if self.approval_type == ApprovalType.AGENT_APPLICATION:
            return AgentApplication(self.record_id)
        raise ValueError(f"Unknown approval type {self.approval_type!r}")

    @classmethod
    def for_target(cls, target: ApprovalTarget, **fields) -> "PendingApproval":
        approval_type, record_id = target_key(target)
        return cls(approval_type=approval_type, record_id=record_id, table_name=target.table_name, **fields)


def target_key(target: ApprovalTarget) -> Tuple[ApprovalType, int]:
    """The (approval_type, record_id) pair a target is stored under."""
    record_id = target.listing_id if isinstance(target, ListingApproval) else target.user_id
    return _TARGET_TYPES[type(target)], record_id
