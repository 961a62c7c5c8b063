"""Directory user model."""

import uuid

from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.sql import func
from signin.database import Base
from signin.utils.timezone import utc_now


class User(Base):
    """
    Local mirror of a directory user.

    Identity fields (upn, display_name, department, object_id) are owned by
    directory sync. Authorization fields (is_admin and the direct location
    grants in ``user_locations``) are owned by admins and survive resync.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    upn = Column(String(255), nullable=False)  # User principal name, unique case-insensitively
    display_name = Column(String(255), nullable=False, default="")
    object_id = Column(String(64), unique=True, nullable=True)  # Entra ID object ID
    department = Column(String(255), nullable=True)
    is_admin = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index("ux_users_upn_lower", func.lower(upn), unique=True),
        Index("idx_users_display_name", "display_name"),
    )

    def __repr__(self):
        return f"<User {self.upn}>"


class UserLocation(Base):
    """Direct location grant controlling admin-console visibility."""

    __tablename__ = "user_locations"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    location_id = Column(String(36), ForeignKey("locations.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index("idx_user_locations_location", "location_id"),
    )
