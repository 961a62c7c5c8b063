"""User and group schemas."""

from datetime import datetime
from typing import List, Optional

from signin.schemas.base import CamelModel


class UserResponse(CamelModel):
    """User response schema."""
    id: str
    upn: str
    display_name: str
    department: Optional[str] = None
    object_id: Optional[str] = None
    is_admin: bool
    created_at: datetime
    updated_at: datetime


class UserAccessUpdate(CamelModel):
    """Admin-owned fields of a user. At least one must be supplied."""
    is_admin: Optional[bool] = None
    location_ids: Optional[List[str]] = None


class GroupResponse(CamelModel):
    """Group response schema."""
    id: str
    display_name: str
    description: Optional[str] = None
    object_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class UserDetailResponse(CamelModel):
    """A user with direct grants, groups and the locations they can check in at."""
    user: UserResponse
    location_ids: List[str]
    groups: List[GroupResponse]
    portal_location_ids: List[str]


class GroupMembersResponse(CamelModel):
    group: GroupResponse
    members: List[UserResponse]
    member_ids: List[str]
    count: int
