"""Portal key model."""

import uuid

from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Index
from signin.database import Base
from signin.utils.timezone import utc_now


class Key(Base):
    """Shared secret presented by a kiosk, valid for a set of locations."""

    __tablename__ = "keys"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    description = Column(Text, nullable=True)
    key_value = Column(String(255), unique=True, nullable=False)
    last_used_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<Key {self.id}>"


class KeyLocation(Base):
    """Location a key authorizes."""

    __tablename__ = "key_locations"

    key_id = Column(String(36), ForeignKey("keys.id", ondelete="CASCADE"), primary_key=True)
    location_id = Column(String(36), ForeignKey("locations.id", ondelete="CASCADE"), primary_key=True)

    __table_args__ = (
        Index("idx_key_locations_location", "location_id"),
    )
