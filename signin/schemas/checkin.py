"""Check-in schemas."""

from datetime import datetime
from typing import Optional

from signin.schemas.base import CamelModel


class CheckinRecord(CamelModel):
    """A check-in joined with its user and location details."""
    id: int
    user_id: str
    user_display_name: str
    user_upn: str
    user_department: Optional[str] = None
    location_id: str
    location_name: str
    location_identifier: str
    key_id: Optional[str] = None
    direction: str
    notes: Optional[str] = None
    occurred_at: datetime
    created_at: datetime
