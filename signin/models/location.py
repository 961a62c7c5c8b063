"""Location model and group assignment."""

import uuid

from sqlalchemy import Column, String, DateTime, Boolean, Integer, ForeignKey, Index
from sqlalchemy.sql import func
from signin.database import Base
from signin.utils.timezone import utc_now


class Location(Base):
    """A physical check-in point addressed by its identifier in portal URLs."""

    __tablename__ = "locations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    identifier = Column(String(100), nullable=False)  # Stored lowercased
    notes_enabled = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index("ux_locations_identifier_lower", func.lower(identifier), unique=True),
    )

    def __repr__(self):
        return f"<Location {self.identifier}>"


class LocationGroup(Base):
    """Group whose members may check in at a location, in assignment order."""

    __tablename__ = "location_groups"

    location_id = Column(String(36), ForeignKey("locations.id", ondelete="CASCADE"), primary_key=True)
    group_id = Column(String(36), ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
    position = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_location_groups_group", "group_id"),
    )
