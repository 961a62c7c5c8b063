"""Check-in audit event model."""

from sqlalchemy import Column, BigInteger, Integer, String, DateTime, Text, ForeignKey, Index, CheckConstraint
from signin.database import Base
from signin.utils.timezone import utc_now

DIRECTIONS = ("in", "out")


class Checkin(Base):
    """Immutable record of a check-in or check-out at a location."""

    __tablename__ = "checkins"

    # SQLite only autoincrements INTEGER PRIMARY KEY columns
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    location_id = Column(String(36), ForeignKey("locations.id", ondelete="CASCADE"), nullable=False)
    key_id = Column(String(36), ForeignKey("keys.id", ondelete="SET NULL"), nullable=True)
    direction = Column(String(3), nullable=False)
    notes = Column(Text, nullable=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint("direction IN ('in', 'out')", name="ck_checkins_direction"),
        Index("idx_checkins_occurred_at", "occurred_at"),
        Index("idx_checkins_location_occurred", "location_id", "occurred_at"),
        Index("idx_checkins_user_occurred", "user_id", "occurred_at"),
    )

    def __repr__(self):
        return f"<Checkin {self.id} {self.direction}>"
