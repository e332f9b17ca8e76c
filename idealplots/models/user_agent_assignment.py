# models/user_agent_assignment.py
from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, Text, text
from sqlalchemy.orm import relationship

from idealplots.db.base_class import Base, utcnow
from idealplots.db.types import BigIntPK, enum_column
from idealplots.models.enums import AssignmentStatus, AssignmentType

_ACTIVE_ASSIGNMENT = text("status = 'active'")


class UserAgentAssignment(Base):
    __tablename__ = "user_agent_assignments"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(BigIntPK, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    agent_id = Column(BigIntPK, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)

    assignment_type = Column(enum_column(AssignmentType, "assignment_type"), nullable=False)
    assignment_reason = Column(Text, nullable=True)
    status = Column(
        enum_column(AssignmentStatus, "assignment_status"), nullable=False, default=AssignmentStatus.ACTIVE
    )

    properties_shown = Column(Integer, nullable=False, default=0)
    meetings_conducted = Column(Integer, nullable=False, default=0)
    user_rating = Column(Numeric(3, 2), nullable=True)
    agent_notes = Column(Text, nullable=True)

    assigned_at = Column(DateTime, nullable=False, default=utcnow)
    last_contact_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index(
            "uq_user_agent_assignments_active",
            "user_id",
            "agent_id",
            unique=True,
            postgresql_where=_ACTIVE_ASSIGNMENT,
            sqlite_where=_ACTIVE_ASSIGNMENT,
        ),
        Index("idx_user_agent_assignments_agent", "agent_id", "status"),
        CheckConstraint("user_rating IS NULL OR (user_rating >= 0 AND user_rating <= 5)", name="chk_assignment_rating"),
    )

    user = relationship("User", foreign_keys=[user_id])
    agent = relationship("User", foreign_keys=[agent_id])
