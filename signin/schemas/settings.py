"""Admin settings schemas."""

from datetime import datetime
from typing import Optional

from signin.schemas.base import CamelModel


class PortalBackgroundResponse(CamelModel):
    has_image: bool
    url: Optional[str] = None
    content_type: Optional[str] = None
    updated_at: Optional[datetime] = None
