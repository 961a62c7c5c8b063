"""
Access resolution.

Two separate authorization layers live here and must not be mixed up:

- Portal eligibility: who may check in at a location. Derived from the
  location's assigned groups and their members.
- Console visibility: which locations an admin-console viewer may see.
  Derived from the admin flag and the viewer's direct location grants.

Every decision is read fresh from the database; nothing is cached.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from signin.errors import NotFoundError
from signin.models import (
    Checkin,
    GroupMember,
    Location,
    LocationGroup,
    User,
    UserLocation,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Viewer:
    """The authenticated admin-console caller for one request."""

    user_id: Optional[str]
    upn: str
    display_name: str
    is_admin: bool
    location_ids: FrozenSet[str] = field(default_factory=frozenset)
    provider: str = "entra"


@dataclass
class CheckinDetail:
    id: int
    user_id: str
    user_display_name: str
    user_upn: str
    user_department: Optional[str]
    location_id: str
    location_name: str
    location_identifier: str
    key_id: Optional[str]
    direction: str
    notes: Optional[str]
    occurred_at: datetime
    created_at: datetime


def like_pattern(term: str) -> str:
    """Substring LIKE pattern with the wildcards in ``term`` escaped."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class AccessService:
    """Service for portal eligibility and console visibility."""

    def __init__(self, db: Session):
        self.db = db

    def _require_location(self, location_id: str) -> Location:
        location = self.db.query(Location).filter(Location.id == location_id).first()
        if not location:
            raise NotFoundError("location not found")
        return location

    def _require_user(self, user_id: str) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("user not found")
        return user

    # =========================================================================
    # Portal eligibility (group-derived)
    # =========================================================================

    def effective_users_for_location(self, location_id: str) -> List[User]:
        """
        Union of the members of every group assigned to a location.

        Groups are walked in assignment order and members within a group by
        display name, so the first appearance of a user fixes their position.
        A user reachable through several groups is listed once.

        Args:
            location_id: Location to resolve

        Returns:
            Users allowed to check in there (possibly empty)
        """
        self._require_location(location_id)

        rows = (
            self.db.query(User, LocationGroup.position)
            .join(GroupMember, GroupMember.user_id == User.id)
            .join(LocationGroup, LocationGroup.group_id == GroupMember.group_id)
            .filter(LocationGroup.location_id == location_id)
            .order_by(LocationGroup.position, func.lower(User.display_name), User.upn)
            .all()
        )

        seen = set()
        users = []
        for user, _position in rows:
            if user.id in seen:
                continue
            seen.add(user.id)
            users.append(user)
        return users

    def is_effective_member(self, location_id: str, user_id: str) -> bool:
        """True if the user belongs to any group assigned to the location."""
        match = (
            self.db.query(GroupMember.user_id)
            .join(LocationGroup, LocationGroup.group_id == GroupMember.group_id)
            .filter(
                LocationGroup.location_id == location_id,
                GroupMember.user_id == user_id,
            )
            .first()
        )
        return match is not None

    def portal_location_ids_for_user(self, user_id: str) -> List[str]:
        """Locations where the user is an effective member."""
        rows = (
            self.db.query(LocationGroup.location_id)
            .join(GroupMember, GroupMember.group_id == LocationGroup.group_id)
            .filter(GroupMember.user_id == user_id)
            .distinct()
            .all()
        )
        return sorted(row.location_id for row in rows)

    # =========================================================================
    # Console visibility (direct grants)
    # =========================================================================

    def location_ids_for_user(self, user_id: str) -> List[str]:
        """Direct location grants of a user."""
        rows = (
            self.db.query(UserLocation.location_id)
            .filter(UserLocation.user_id == user_id)
            .order_by(UserLocation.location_id)
            .all()
        )
        return [row.location_id for row in rows]

    def user_can_access_location(self, user_id: str, location_id: str) -> bool:
        """
        Whether a user may view a location's data in the admin console.

        Group membership plays no part here: only the admin flag and the
        user's direct grants count.
        """
        user = self._require_user(user_id)
        self._require_location(location_id)

        if user.is_admin:
            return True

        grant = (
            self.db.query(UserLocation)
            .filter(UserLocation.user_id == user_id, UserLocation.location_id == location_id)
            .first()
        )
        return grant is not None

    def viewer_can_access_location(self, viewer: Viewer, location_id: str) -> bool:
        """Console check for a request viewer, who may not have a user row."""
        if viewer.is_admin:
            self._require_location(location_id)
            return True
        if not viewer.user_id:
            return False
        return self.user_can_access_location(viewer.user_id, location_id)

    def _granted_location_ids(self, viewer: Viewer):
        return select(UserLocation.location_id).where(UserLocation.user_id == viewer.user_id)

    def visible_locations(self, viewer: Viewer, search: Optional[str] = None) -> List[Location]:
        """All locations for admins, granted locations otherwise, optionally filtered."""
        query = self.db.query(Location)

        if not viewer.is_admin:
            if not viewer.user_id:
                return []
            query = query.filter(Location.id.in_(self._granted_location_ids(viewer)))

        term = (search or "").strip()
        if term:
            pattern = like_pattern(term)
            query = query.filter(or_(
                Location.name.ilike(pattern, escape="\\"),
                Location.identifier.ilike(pattern, escape="\\"),
            ))

        return query.order_by(Location.name, Location.identifier).all()

    def visible_checkins(
        self,
        viewer: Viewer,
        location_id: Optional[str] = None,
        user_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[CheckinDetail]:
        """
        Check-ins the viewer may see, newest first.

        Admins see every check-in. Other viewers see only check-ins at
        locations in their direct grant set. Filters narrow the result
        further; no upper bound is put on ``limit`` here.
        """
        query = (
            self.db.query(Checkin, User, Location)
            .join(User, User.id == Checkin.user_id)
            .join(Location, Location.id == Checkin.location_id)
        )

        if not viewer.is_admin:
            if not viewer.user_id:
                return []
            query = query.filter(Checkin.location_id.in_(self._granted_location_ids(viewer)))

        if location_id:
            query = query.filter(Checkin.location_id == location_id)
        if user_id:
            query = query.filter(Checkin.user_id == user_id)

        rows = (
            query.order_by(Checkin.occurred_at.desc(), Checkin.id.desc())
            .limit(limit)
            .offset(offset)
            .all()
        )

        return [
            CheckinDetail(
                id=checkin.id,
                user_id=user.id,
                user_display_name=user.display_name,
                user_upn=user.upn,
                user_department=user.department,
                location_id=location.id,
                location_name=location.name,
                location_identifier=location.identifier,
                key_id=checkin.key_id,
                direction=checkin.direction,
                notes=checkin.notes,
                occurred_at=checkin.occurred_at,
                created_at=checkin.created_at,
            )
            for checkin, user, location in rows
        ]
