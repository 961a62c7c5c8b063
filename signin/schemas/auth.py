"""Authentication schemas."""

from typing import List, Optional

from signin.schemas.base import CamelModel


class LoginRequest(CamelModel):
    """Local bootstrap admin login."""
    username: str
    password: str


class ViewerResponse(CamelModel):
    """The signed-in console user."""
    id: Optional[str] = None
    upn: str
    display_name: str
    is_admin: bool
    location_ids: List[str] = []
    provider: str


class ProvidersResponse(CamelModel):
    oidc: bool
    local: bool
