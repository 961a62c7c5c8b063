"""Portal key schemas."""

from datetime import datetime
from typing import List, Optional

from signin.schemas.base import CamelModel


class KeyCreate(CamelModel):
    """Schema for creating a key. A blank key value is generated server-side."""
    description: Optional[str] = None
    key_value: Optional[str] = None
    location_ids: List[str] = []


class KeyUpdate(CamelModel):
    """Schema for a partial key update."""
    description: Optional[str] = None
    key_value: Optional[str] = None
    location_ids: Optional[List[str]] = None


class KeyLocationSummary(CamelModel):
    id: str
    name: str
    identifier: str


class KeyResponse(CamelModel):
    """Key response schema."""
    id: str
    description: Optional[str] = None
    key_value: str
    location_ids: List[str] = []
    locations: List[KeyLocationSummary] = []
    last_used_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
