# models/admin_created_notification.py
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship

from idealplots.db.base_class import Base
from idealplots.db.types import BigIntPK


class AdminCreatedNotification(Base):
    """Outbox row drained by the external email/SMS delivery worker."""

    __tablename__ = "admin_created_notifications"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_by_admin_id = Column(BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    email_sent = Column(Boolean, nullable=False, default=False)
    sms_sent = Column(Boolean, nullable=False, default=False)
    email_sent_at = Column(DateTime, nullable=True)
    sms_sent_at = Column(DateTime, nullable=True)

    temp_password = Column(String(255), nullable=False)
    password_reset_required = Column(Boolean, nullable=False, default=True)

    email_subject = Column(String(255), nullable=True)
    email_body = Column(Text, nullable=True)
    sms_message = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_admin_notifications_user", "user_id"),
        Index("idx_admin_notifications_unsent", "email_sent", "sms_sent"),
    )

    agent = relationship("User", foreign_keys=[user_id])
    created_by = relationship("User", foreign_keys=[created_by_admin_id])
