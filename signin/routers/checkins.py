"""Check-in audit log API endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from signin.database import get_db
from signin.errors import InvalidInputError
from signin.schemas.checkin import CheckinRecord
from signin.services.access_service import AccessService, Viewer
from signin.services.auth_service import get_current_viewer
from signin.services.directory_service import parse_uuid

router = APIRouter()
logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 500


@router.get("", response_model=List[CheckinRecord])
def list_checkins(
    location_id: Optional[str] = Query(None, alias="locationId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    offset: int = Query(0, ge=0),
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db)
):
    """Check-ins visible to the caller, newest first."""
    field_errors = {}
    if location_id and not parse_uuid(location_id):
        field_errors["locationId"] = "must be a UUID"
    if user_id and not parse_uuid(user_id):
        field_errors["userId"] = "must be a UUID"
    if field_errors:
        raise InvalidInputError("invalid filter", field_errors)

    return AccessService(db).visible_checkins(
        viewer,
        location_id=parse_uuid(location_id),
        user_id=parse_uuid(user_id),
        limit=limit,
        offset=offset,
    )
