"""Binary asset model (portal background image)."""

from sqlalchemy import Column, String, DateTime, LargeBinary
from signin.database import Base
from signin.utils.timezone import utc_now


class Asset(Base):
    """Keyed binary blob stored in the database."""

    __tablename__ = "assets"

    key = Column(String(100), primary_key=True)
    content_type = Column(String(100), nullable=False)
    data = Column(LargeBinary, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
