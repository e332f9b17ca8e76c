# idealplots/db/base_class.py
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime
from sqlalchemy.orm import as_declarative, declared_attr


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@as_declarative()
class Base:
    id: any
    __name__: str

    # Generate __tablename__ automatically if not provided
    @declared_attr
    def __tablename__(cls) -> str:
        return cls.__name__.lower()

    # Timestamps shared by all tables
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
