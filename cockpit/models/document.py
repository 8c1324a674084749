from datetime import datetime, timezone

from sqlalchemy import Column, Integer, Text

from cockpit.db.base import Base


class Document(Base):
    """One JSON record of a collection (``clients`` or ``users``)."""

    __tablename__ = "documents"

    collection = Column(Text, primary_key=True)
    id = Column(Text, primary_key=True)
    position = Column(Integer, nullable=False, default=0)
    body = Column(Text, nullable=False)
    updated_at = Column(
        Text, nullable=False, default=lambda: datetime.now(tz=timezone.utc).isoformat()
    )


__all__ = ["Document"]
