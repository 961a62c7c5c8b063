"""Pydantic schemas for request/response validation."""

from signin.schemas.auth import LoginRequest, ViewerResponse, ProvidersResponse
from signin.schemas.checkin import CheckinRecord
from signin.schemas.key import KeyCreate, KeyUpdate, KeyResponse, KeyLocationSummary
from signin.schemas.location import LocationCreate, LocationUpdate, LocationResponse
from signin.schemas.portal import (
    PortalCheckinRequest,
    PortalConfigResponse,
    PortalLocation,
    PortalUser,
)
from signin.schemas.settings import PortalBackgroundResponse
from signin.schemas.sync import SyncJobStatus, SyncStatusResponse
from signin.schemas.user import (
    GroupMembersResponse,
    GroupResponse,
    UserAccessUpdate,
    UserDetailResponse,
    UserResponse,
)

__all__ = [
    "LoginRequest",
    "ViewerResponse",
    "ProvidersResponse",
    "CheckinRecord",
    "KeyCreate",
    "KeyUpdate",
    "KeyResponse",
    "KeyLocationSummary",
    "LocationCreate",
    "LocationUpdate",
    "LocationResponse",
    "PortalCheckinRequest",
    "PortalConfigResponse",
    "PortalLocation",
    "PortalUser",
    "PortalBackgroundResponse",
    "SyncJobStatus",
    "SyncStatusResponse",
    "GroupMembersResponse",
    "GroupResponse",
    "UserAccessUpdate",
    "UserDetailResponse",
    "UserResponse",
]
