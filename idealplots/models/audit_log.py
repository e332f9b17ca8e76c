# models/audit_log.py
from sqlalchemy import JSON, Column, ForeignKey, Index, String, Text

from idealplots.db.base_class import Base
from idealplots.db.types import BigIntPK, enum_column
from idealplots.models.enums import AuditSeverity


class AuditLog(Base):
    """Append-only; rows are never updated or deleted by the engine."""

    __tablename__ = "audit_logs"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(BigIntPK, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(100), nullable=False)
    table_name = Column(String(100), nullable=False)
    record_id = Column(BigIntPK, nullable=True)

    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    description = Column(Text, nullable=True)
    severity = Column(enum_column(AuditSeverity, "audit_severity"), nullable=False, default=AuditSeverity.LOW)

    __table_args__ = (
        Index("idx_audit_logs_table_record", "table_name", "record_id"),
        Index("idx_audit_logs_action", "action"),
        Index("idx_audit_logs_severity", "severity"),
    )
