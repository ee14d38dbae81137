from datetime import datetime, timezone
from sqlalchemy import Column, DateTime
from ..database import Base


def _utcnow() -> datetime:
    # Stored naive; every row timestamp is UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel(Base):
    """Shared audit columns for profile and booking rows."""

    __abstract__ = True

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
