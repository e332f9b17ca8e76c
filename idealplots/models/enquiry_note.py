# models/enquiry_note.py
from sqlalchemy import Column, Date, ForeignKey, Index, Text
from sqlalchemy.orm import relationship

from idealplots.db.base_class import Base
from idealplots.db.types import BigIntPK, enum_column
from idealplots.models.enums import CommunicationMethod, NoteType


class EnquiryNote(Base):
    __tablename__ = "enquiry_notes"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    enquiry_id = Column(BigIntPK, ForeignKey("enquiries.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    note = Column(Text, nullable=False)
    note_type = Column(enum_column(NoteType, "note_type"), nullable=False, default=NoteType.INTERNAL)
    communication_method = Column(enum_column(CommunicationMethod, "communication_method"), nullable=True)
    next_follow_up_date = Column(Date, nullable=True)

    __table_args__ = (
        Index("idx_enquiry_notes_enquiry", "enquiry_id"),
        Index("idx_enquiry_notes_follow_up", "next_follow_up_date"),
    )

    enquiry = relationship("Enquiry", back_populates="notes")
    author = relationship("User")
