"""Location management service."""

import logging
import re
from typing import Dict, Iterable, List, Optional

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from signin.errors import ConflictError, InvalidInputError, NotFoundError
from signin.models import Group, Location, LocationGroup
from signin.services.portal_service import normalize_identifier
from signin.utils.timezone import utc_now

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def unique_ids(ids: Optional[Iterable[str]]) -> List[str]:
    """Drop blanks and duplicates, keeping first-seen order."""
    result = []
    for value in ids or []:
        value = (value or "").strip()
        if value and value not in result:
            result.append(value)
    return result


class LocationService:
    """Service for location CRUD and group assignment."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, location_id: str) -> Location:
        location = self.db.query(Location).filter(Location.id == location_id).first()
        if not location:
            raise NotFoundError("location not found")
        return location

    def group_ids_for(self, location_ids: List[str]) -> Dict[str, List[str]]:
        """Assigned group IDs per location, in assignment order."""
        result = {location_id: [] for location_id in location_ids}
        if not location_ids:
            return result

        rows = (
            self.db.query(LocationGroup)
            .filter(LocationGroup.location_id.in_(location_ids))
            .order_by(LocationGroup.location_id, LocationGroup.position)
            .all()
        )
        for row in rows:
            result[row.location_id].append(row.group_id)
        return result

    def group_ids(self, location_id: str) -> List[str]:
        return self.group_ids_for([location_id])[location_id]

    def create(
        self,
        name: str,
        identifier: str,
        group_ids: Optional[List[str]] = None,
        notes_enabled: bool = False,
    ) -> Location:
        """Create a location and assign its groups in one transaction."""
        name = self._validate_name(name)
        identifier = self._validate_identifier(identifier)
        group_ids = self._validate_group_ids(group_ids)
        self._check_identifier_free(identifier)

        location = Location(name=name, identifier=identifier, notes_enabled=notes_enabled)
        try:
            self.db.add(location)
            self.db.flush()
            self._replace_groups(location.id, group_ids)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Location create conflict for '{identifier}': {e}")
            raise ConflictError("identifier already in use")

        self.db.refresh(location)
        logger.info(f"Created location '{identifier}' with {len(group_ids)} groups")
        return location

    def update(
        self,
        location_id: str,
        name: Optional[str] = None,
        identifier: Optional[str] = None,
        group_ids: Optional[List[str]] = None,
        notes_enabled: Optional[bool] = None,
    ) -> Location:
        """
        Apply a partial update. Omitted fields are left unchanged.

        The location row is locked for the duration so concurrent
        updates of its group set serialize instead of overwriting each other.
        """
        field_values = {}
        if name is not None:
            field_values["name"] = self._validate_name(name)
        if identifier is not None:
            field_values["identifier"] = self._validate_identifier(identifier)
        if group_ids is not None:
            group_ids = self._validate_group_ids(group_ids)

        location = (
            self.db.query(Location)
            .filter(Location.id == location_id)
            .with_for_update()
            .first()
        )
        if not location:
            self.db.rollback()
            raise NotFoundError("location not found")

        if "identifier" in field_values and field_values["identifier"] != location.identifier:
            try:
                self._check_identifier_free(field_values["identifier"], exclude_id=location.id)
            except ConflictError:
                self.db.rollback()
                raise

        try:
            for attr, value in field_values.items():
                setattr(location, attr, value)
            if notes_enabled is not None:
                location.notes_enabled = notes_enabled
            if group_ids is not None:
                self._replace_groups(location.id, group_ids)
                # Group changes alone still count as an update
                location.updated_at = utc_now()
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Location update conflict for {location_id}: {e}")
            raise ConflictError("identifier already in use")

        self.db.refresh(location)
        logger.info(f"Updated location '{location.identifier}'")
        return location

    def delete(self, location_id: str) -> None:
        location = self.get(location_id)
        self.db.delete(location)
        self.db.commit()
        logger.info(f"Deleted location '{location.identifier}'")

    # =========================================================================
    # Helpers
    # =========================================================================

    def _replace_groups(self, location_id: str, group_ids: List[str]) -> None:
        """Swap the whole group set. Caller owns the transaction."""
        self.db.query(LocationGroup).filter(
            LocationGroup.location_id == location_id
        ).delete(synchronize_session=False)
        if group_ids:
            self.db.execute(
                insert(LocationGroup),
                [
                    {"location_id": location_id, "group_id": group_id, "position": position}
                    for position, group_id in enumerate(group_ids)
                ],
            )

    def _validate_name(self, name: Optional[str]) -> str:
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("name is required", {"name": "name is required"})
        return name

    def _validate_identifier(self, identifier: Optional[str]) -> str:
        identifier = normalize_identifier(identifier)
        if not identifier:
            raise InvalidInputError("identifier is required", {"identifier": "identifier is required"})
        if not IDENTIFIER_PATTERN.match(identifier):
            message = "identifier may only contain letters, digits, '-' and '_'"
            raise InvalidInputError(message, {"identifier": message})
        return identifier

    def _validate_group_ids(self, group_ids: Optional[List[str]]) -> List[str]:
        group_ids = unique_ids(group_ids)
        if not group_ids:
            return []

        found = {
            row.id for row in self.db.query(Group.id).filter(Group.id.in_(group_ids)).all()
        }
        missing = [group_id for group_id in group_ids if group_id not in found]
        if missing:
            message = f"unknown group ids: {', '.join(missing)}"
            raise InvalidInputError(message, {"groupIds": message})
        return group_ids

    def _check_identifier_free(self, identifier: str, exclude_id: Optional[str] = None) -> None:
        query = self.db.query(Location.id).filter(Location.identifier == identifier)
        if exclude_id:
            query = query.filter(Location.id != exclude_id)
        if query.first():
            raise ConflictError("identifier already in use")
