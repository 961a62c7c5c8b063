"""Portal key management service."""

import logging
import secrets
from typing import Dict, List, Optional

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from signin.errors import ConflictError, InvalidInputError, NotFoundError
from signin.models import Key, KeyLocation, Location
from signin.services.location_service import unique_ids
from signin.utils.timezone import utc_now

logger = logging.getLogger(__name__)

# 24 random bytes encode to 32 URL-safe characters
KEY_BYTES = 24
MAX_KEY_LENGTH = 255


def generate_key_value() -> str:
    """Generate a new random, URL-safe key value."""
    return secrets.token_urlsafe(KEY_BYTES)


class KeyService:
    """Service for key CRUD and location assignment."""

    def __init__(self, db: Session):
        self.db = db

    def list_keys(self) -> List[Key]:
        return self.db.query(Key).order_by(Key.created_at.desc(), Key.id).all()

    def get(self, key_id: str) -> Key:
        key = self.db.query(Key).filter(Key.id == key_id).first()
        if not key:
            raise NotFoundError("key not found")
        return key

    def locations_for(self, key_ids: List[str]) -> Dict[str, List[Location]]:
        """Authorized locations per key, ordered by name."""
        result = {key_id: [] for key_id in key_ids}
        if not key_ids:
            return result

        rows = (
            self.db.query(KeyLocation.key_id, Location)
            .join(Location, Location.id == KeyLocation.location_id)
            .filter(KeyLocation.key_id.in_(key_ids))
            .order_by(Location.name, Location.identifier)
            .all()
        )
        for key_id, location in rows:
            result[key_id].append(location)
        return result

    def create(
        self,
        description: Optional[str] = None,
        key_value: Optional[str] = None,
        location_ids: Optional[List[str]] = None,
    ) -> Key:
        """
        Create a key. A missing or blank value is generated.

        Raises:
            ConflictError: if the value is already used by another key
        """
        key_value = (key_value or "").strip() or generate_key_value()
        self._validate_key_value(key_value)
        location_ids = self._validate_location_ids(location_ids)

        key = Key(description=self._clean_description(description), key_value=key_value)
        try:
            self.db.add(key)
            self.db.flush()
            self._replace_locations(key.id, location_ids)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Key create conflict: {e.orig}")
            raise ConflictError("key value already in use")

        self.db.refresh(key)
        logger.info(f"Created key {key.id} for {len(location_ids)} locations")
        return key

    def update(
        self,
        key_id: str,
        description: Optional[str] = None,
        key_value: Optional[str] = None,
        location_ids: Optional[List[str]] = None,
    ) -> Key:
        """Partial update; the key row is locked while its location set is replaced."""
        if key_value is not None:
            key_value = key_value.strip()
            self._validate_key_value(key_value)
        if location_ids is not None:
            location_ids = self._validate_location_ids(location_ids)

        key = self.db.query(Key).filter(Key.id == key_id).with_for_update().first()
        if not key:
            self.db.rollback()
            raise NotFoundError("key not found")

        try:
            if description is not None:
                key.description = self._clean_description(description)
            if key_value is not None:
                key.key_value = key_value
            if location_ids is not None:
                self._replace_locations(key.id, location_ids)
                key.updated_at = utc_now()
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Key update conflict for {key_id}: {e.orig}")
            raise ConflictError("key value already in use")

        self.db.refresh(key)
        logger.info(f"Updated key {key.id}")
        return key

    def delete(self, key_id: str) -> None:
        key = self.get(key_id)
        self.db.delete(key)
        self.db.commit()
        logger.info(f"Deleted key {key_id}")

    def _replace_locations(self, key_id: str, location_ids: List[str]) -> None:
        """Swap the whole location set. Caller owns the transaction."""
        self.db.query(KeyLocation).filter(
            KeyLocation.key_id == key_id
        ).delete(synchronize_session=False)
        if location_ids:
            self.db.execute(
                insert(KeyLocation),
                [{"key_id": key_id, "location_id": location_id} for location_id in location_ids],
            )

    def _validate_key_value(self, key_value: str) -> None:
        if not key_value:
            raise InvalidInputError("key value cannot be empty", {"keyValue": "key value cannot be empty"})
        if len(key_value) > MAX_KEY_LENGTH:
            message = f"key value must be at most {MAX_KEY_LENGTH} characters"
            raise InvalidInputError(message, {"keyValue": message})

    def _validate_location_ids(self, location_ids: Optional[List[str]]) -> List[str]:
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

    @staticmethod
    def _clean_description(description: Optional[str]) -> Optional[str]:
        description = (description or "").strip()
        return description or None
