"""Directory group model and membership."""

import uuid

from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Index
from signin.database import Base
from signin.utils.timezone import utc_now


class Group(Base):
    """Local mirror of a directory security group. Owned by directory sync."""

    __tablename__ = "groups"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    display_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    object_id = Column(String(64), unique=True, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<Group {self.display_name}>"


class GroupMember(Base):
    """Membership of a user in a group, replaced wholesale on each sync."""

    __tablename__ = "group_members"

    group_id = Column(String(36), ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index("idx_group_members_user", "user_id"),
    )
