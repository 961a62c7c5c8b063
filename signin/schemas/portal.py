"""Kiosk portal schemas."""

from typing import List, Optional

from signin.schemas.base import CamelModel


class PortalLocation(CamelModel):
    """Public-safe view of a location."""
    id: str
    name: str
    identifier: str
    notes_enabled: bool


class PortalUser(CamelModel):
    id: str
    display_name: str
    upn: str


class PortalConfigResponse(CamelModel):
    location: PortalLocation
    users: List[PortalUser]
    background_image_url: Optional[str] = None


class PortalCheckinRequest(CamelModel):
    """Check-in submission. Presence of required fields is checked by the router."""
    key: Optional[str] = None
    location: Optional[str] = None
    user_id: Optional[str] = None
    direction: Optional[str] = None
    notes: Optional[str] = None
