"""Check-in ledger: validation and persistence of kiosk check-ins."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from signin.errors import ForbiddenError, InternalError, InvalidInputError, NotFoundError
from signin.models import Checkin, DIRECTIONS
from signin.services.access_service import AccessService
from signin.services.portal_service import INVALID_KEY_OR_LOCATION, PortalService
from signin.utils.timezone import utc_now

logger = logging.getLogger(__name__)

USER_NOT_PERMITTED = "user not permitted for this location"


def clean_notes(notes: Optional[str], notes_enabled: bool) -> Optional[str]:
    """Notes survive only when the location allows them and they are not blank."""
    if not notes_enabled:
        return None
    trimmed = (notes or "").strip()
    return trimmed or None


class CheckinService:
    """Service for recording check-ins."""

    def __init__(self, db: Session):
        self.db = db
        self.portal = PortalService(db)
        self.access = AccessService(db)

    def record_checkin(
        self,
        key_value: str,
        identifier: str,
        user_id: str,
        direction: str,
        notes: Optional[str] = None,
        occurred_at: Optional[datetime] = None,
    ) -> Checkin:
        """
        Validate and persist one check-in event.

        Membership is checked against the database on every call, so a user
        removed from a group after the kiosk loaded its roster is refused.

        Raises:
            ForbiddenError: invalid key/location, or user not eligible
            InvalidInputError: direction other than "in" or "out"
        """
        try:
            location, key = self.portal.authorize(key_value, identifier, touch=False)
        except NotFoundError:
            raise ForbiddenError(INVALID_KEY_OR_LOCATION)

        if direction not in DIRECTIONS:
            raise InvalidInputError("invalid direction", {"direction": "must be 'in' or 'out'"})

        if not user_id or not self.access.is_effective_member(location.id, user_id):
            logger.info(f"Check-in refused: user {user_id} not eligible at '{location.identifier}'")
            raise ForbiddenError(USER_NOT_PERMITTED)

        checkin = Checkin(
            user_id=user_id,
            location_id=location.id,
            key_id=key.id,
            direction=direction,
            notes=clean_notes(notes, location.notes_enabled),
            occurred_at=occurred_at or utc_now(),
        )
        try:
            self.db.add(checkin)
            self.db.commit()
            self.db.refresh(checkin)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to record check-in at '{location.identifier}': {e}")
            raise InternalError("failed to record checkin") from e

        logger.info(f"Recorded check-{direction} for user {user_id} at '{location.identifier}'")
        self.portal.touch_key(key.id)
        return checkin
