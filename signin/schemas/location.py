"""Location schemas."""

from datetime import datetime
from typing import List, Optional

from signin.schemas.base import CamelModel


class LocationCreate(CamelModel):
    """Schema for creating a location."""
    name: str = ""
    identifier: str = ""
    group_ids: List[str] = []
    notes_enabled: bool = False


class LocationUpdate(CamelModel):
    """Schema for a partial location update. Omitted fields are left alone."""
    name: Optional[str] = None
    identifier: Optional[str] = None
    group_ids: Optional[List[str]] = None
    notes_enabled: Optional[bool] = None


class LocationResponse(CamelModel):
    """Location response schema."""
    id: str
    name: str
    identifier: str
    notes_enabled: bool
    group_ids: List[str] = []
    created_at: datetime
    updated_at: datetime
