"""
Directory mirror: users, groups and memberships.

User rows have two owners. Directory sync writes the identity fields and
admins write the authorization fields (admin flag, direct location
grants). ``upsert_user`` only touches an authorization field when the
caller passes a value for it, so a resync never wipes local grants.
"""

import logging
import uuid
from typing import Iterable, List, Optional

from sqlalchemy import func, insert, or_
from sqlalchemy.orm import Session

from signin.errors import InvalidInputError, NotFoundError
from signin.models import Group, GroupMember, Location, User, UserLocation
from signin.services.access_service import like_pattern
from signin.services.location_service import unique_ids
from signin.utils.timezone import utc_now

logger = logging.getLogger(__name__)


def parse_uuid(value: Optional[str]) -> Optional[str]:
    """Canonical UUID string, or None if ``value`` is not a UUID."""
    if not value:
        return None
    try:
        return str(uuid.UUID(value))
    except (ValueError, AttributeError, TypeError):
        return None


class DirectoryService:
    """Service for the local copy of directory users and groups."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Users
    # =========================================================================

    def list_users(self, search: Optional[str] = None) -> List[User]:
        query = self.db.query(User)
        term = (search or "").strip()
        if term:
            pattern = like_pattern(term)
            query = query.filter(or_(
                User.display_name.ilike(pattern, escape="\\"),
                User.upn.ilike(pattern, escape="\\"),
                User.department.ilike(pattern, escape="\\"),
            ))
        return query.order_by(func.lower(User.display_name), User.upn).all()

    def get_user(self, user_id: str) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("user not found")
        return user

    def get_user_by_upn(self, upn: str) -> Optional[User]:
        return self.db.query(User).filter(func.lower(User.upn) == upn.strip().lower()).first()

    def get_user_by_object_id(self, object_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.object_id == object_id).first()

    def groups_for_user(self, user_id: str) -> List[Group]:
        return (
            self.db.query(Group)
            .join(GroupMember, GroupMember.group_id == Group.id)
            .filter(GroupMember.user_id == user_id)
            .order_by(Group.display_name)
            .all()
        )

    def resolve_principal(self, principal: str) -> Optional[User]:
        """
        Map an authenticated principal to a user row.

        Tries a case-insensitive match on the full principal name first, then
        on the part before "@". The fallback only applies when exactly one
        user has that local part.
        """
        principal = (principal or "").strip().lower()
        if not principal:
            return None

        user = self.db.query(User).filter(func.lower(User.upn) == principal).first()
        if user:
            return user

        local_part = principal.split("@", 1)[0]
        if not local_part:
            return None

        escaped = local_part.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        candidates = (
            self.db.query(User)
            .filter(or_(
                func.lower(User.upn) == local_part,
                func.lower(User.upn).like(f"{escaped}@%", escape="\\"),
            ))
            .limit(2)
            .all()
        )
        if len(candidates) == 1:
            return candidates[0]
        if candidates:
            logger.warning(f"Principal '{principal}' matches several users by local part")
        return None

    def upsert_user(
        self,
        upn: str,
        display_name: Optional[str] = None,
        department: Optional[str] = None,
        object_id: Optional[str] = None,
        user_id: Optional[str] = None,
        is_admin: Optional[bool] = None,
        location_ids: Optional[List[str]] = None,
    ) -> User:
        """
        Insert or update a user, merging with whatever is stored.

        The row is found by ``user_id``, then ``object_id``, then UPN. Identity
        fields are always written. ``is_admin`` and ``location_ids`` are only
        written when not None; a new user gets False and no grants.
        Caller owns the transaction.
        """
        upn = (upn or "").strip()
        if not upn:
            raise InvalidInputError("upn is required", {"upn": "upn is required"})

        user = None
        if user_id:
            user = self.db.query(User).filter(User.id == user_id).first()
        if user is None and object_id:
            user = self.get_user_by_object_id(object_id)
        if user is None:
            user = self.get_user_by_upn(upn)

        if user is None:
            user = User(
                id=user_id or parse_uuid(object_id) or str(uuid.uuid4()),
                is_admin=bool(is_admin),
            )
            self.db.add(user)
        elif is_admin is not None:
            user.is_admin = is_admin

        user.upn = upn
        user.display_name = (display_name or "").strip() or upn
        user.department = (department or "").strip() or None
        if object_id:
            user.object_id = object_id
        self.db.flush()

        if location_ids is not None:
            self._replace_user_locations(user.id, self._validate_location_ids(location_ids))
        return user

    def update_user_access(
        self,
        user_id: str,
        is_admin: Optional[bool] = None,
        location_ids: Optional[List[str]] = None,
    ) -> User:
        """
        Change a user's admin flag and direct grants together.

        Both changes commit in one transaction with the user row locked.

        Raises:
            InvalidInputError: if neither field is supplied
            NotFoundError: if the user does not exist
        """
        if is_admin is None and location_ids is None:
            raise InvalidInputError("no fields to update")
        if location_ids is not None:
            location_ids = self._validate_location_ids(location_ids)

        user = self.db.query(User).filter(User.id == user_id).with_for_update().first()
        if not user:
            self.db.rollback()
            raise NotFoundError("user not found")

        try:
            if is_admin is not None:
                user.is_admin = is_admin
            if location_ids is not None:
                self._replace_user_locations(user.id, location_ids)
            user.updated_at = utc_now()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(user)
        logger.info(f"Updated access for {user.upn}: admin={user.is_admin}")
        return user

    def delete_user(self, user: User) -> None:
        """Remove a user. Caller owns the transaction."""
        self.db.delete(user)
        self.db.flush()

    def _replace_user_locations(self, user_id: str, location_ids: List[str]) -> None:
        self.db.query(UserLocation).filter(
            UserLocation.user_id == user_id
        ).delete(synchronize_session=False)
        if location_ids:
            now = utc_now()
            self.db.execute(
                insert(UserLocation),
                [
                    {"user_id": user_id, "location_id": location_id, "created_at": now}
                    for location_id in location_ids
                ],
            )

    def _validate_location_ids(self, location_ids: Iterable[str]) -> List[str]:
        location_ids = unique_ids(location_ids)
        if not location_ids:
            return []
        found = {
            row.id for row in self.db.query(Location.id).filter(Location.id.in_(location_ids)).all()
        }
        missing = [location_id for location_id in location_ids if location_id not in found]
        if missing:
            message = f"unknown location ids: {', '.join(missing)}"
            raise InvalidInputError(message, {"locationIds": message})
        return location_ids

    # =========================================================================
    # Groups
    # =========================================================================

    def list_groups(self, search: Optional[str] = None) -> List[Group]:
        query = self.db.query(Group)
        term = (search or "").strip()
        if term:
            pattern = like_pattern(term)
            query = query.filter(or_(
                Group.display_name.ilike(pattern, escape="\\"),
                Group.description.ilike(pattern, escape="\\"),
            ))
        return query.order_by(func.lower(Group.display_name), Group.id).all()

    def get_group(self, group_id: str) -> Group:
        group = self.db.query(Group).filter(Group.id == group_id).first()
        if not group:
            raise NotFoundError("group not found")
        return group

    def group_members(self, group_id: str) -> List[User]:
        self.get_group(group_id)
        return (
            self.db.query(User)
            .join(GroupMember, GroupMember.user_id == User.id)
            .filter(GroupMember.group_id == group_id)
            .order_by(func.lower(User.display_name), User.upn)
            .all()
        )

    def upsert_group(
        self,
        object_id: str,
        display_name: str,
        description: Optional[str] = None,
    ) -> Group:
        """Insert or update a group keyed by directory object ID. Caller owns the transaction."""
        group = self.db.query(Group).filter(Group.object_id == object_id).first()
        if group is None:
            group = Group(id=parse_uuid(object_id) or str(uuid.uuid4()), object_id=object_id)
            self.db.add(group)

        group.display_name = (display_name or "").strip() or object_id
        group.description = (description or "").strip() or None
        self.db.flush()
        return group

    def replace_group_members(self, group_id: str, user_ids: Iterable[str]) -> int:
        """
        Replace a group's full membership with ``user_ids``.

        IDs without a user row are skipped. Caller owns the transaction.

        Returns:
            Number of members written
        """
        user_ids = unique_ids(user_ids)
        existing = set()
        if user_ids:
            existing = {
                row.id for row in self.db.query(User.id).filter(User.id.in_(user_ids)).all()
            }
        members = [user_id for user_id in user_ids if user_id in existing]

        self.db.query(GroupMember).filter(
            GroupMember.group_id == group_id
        ).delete(synchronize_session=False)
        if members:
            now = utc_now()
            self.db.execute(
                insert(GroupMember),
                [{"group_id": group_id, "user_id": user_id, "created_at": now} for user_id in members],
            )
        return len(members)

    def delete_group(self, group: Group) -> None:
        """Remove a group; its memberships and location assignments cascade."""
        self.db.delete(group)
        self.db.flush()
