"""
Portal key gate.

Turns an untrusted kiosk request (key value + location identifier) into
access to one location, without a console session.
"""

import logging
from typing import Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from signin.errors import NotFoundError
from signin.models import Key, KeyLocation, Location
from signin.utils.timezone import utc_now

logger = logging.getLogger(__name__)

INVALID_KEY_OR_LOCATION = "invalid key or location"


def normalize_identifier(identifier: Optional[str]) -> str:
    return (identifier or "").strip().lower()


class PortalService:
    """Service for validating kiosk keys against locations."""

    def __init__(self, db: Session):
        self.db = db

    def authorize(self, key_value: str, identifier: str, touch: bool = True) -> Tuple[Location, Key]:
        """
        Resolve a key and location identifier in a single lookup.

        The key must match exactly and must authorize a location whose
        identifier matches case-insensitively. A valid key for another
        location fails the same way as an unknown key.

        Args:
            key_value: Shared secret presented by the kiosk
            identifier: Location identifier from the portal URL
            touch: Record key usage on success

        Returns:
            (location, key)

        Raises:
            NotFoundError: if either half does not match
        """
        normalized = normalize_identifier(identifier)
        if not key_value or not normalized:
            raise NotFoundError(INVALID_KEY_OR_LOCATION)

        row = (
            self.db.query(Location, Key)
            .join(KeyLocation, KeyLocation.location_id == Location.id)
            .join(Key, Key.id == KeyLocation.key_id)
            .filter(
                Key.key_value == key_value,
                func.lower(Location.identifier) == normalized,
            )
            .first()
        )
        if row is None:
            logger.info(f"Portal key rejected for location '{normalized}'")
            raise NotFoundError(INVALID_KEY_OR_LOCATION)

        location, key = row
        if touch:
            self.touch_key(key.id)
        return location, key

    def touch_key(self, key_id: str) -> None:
        """Bump the key's last-used timestamp. Failures are logged, never raised."""
        now = utc_now()
        try:
            self.db.query(Key).filter(Key.id == key_id).update(
                {Key.last_used_at: now, Key.updated_at: now},
                synchronize_session=False,
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Failed to record usage for key {key_id}: {e}")
