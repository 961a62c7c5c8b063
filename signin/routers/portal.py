"""
Kiosk portal API endpoints.

Unauthenticated: every call is gated by a key + location identifier pair.
A missing key and a key for another location get the same 403.
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session
from typing import Optional
import logging

from signin.config import settings
from signin.database import get_db
from signin.errors import ForbiddenError, InvalidInputError, NotFoundError, SigninError
from signin.schemas.portal import (
    PortalCheckinRequest,
    PortalConfigResponse,
    PortalLocation,
    PortalUser,
)
from signin.services.access_service import AccessService
from signin.services.asset_service import PORTAL_BACKGROUND_KEY, get_asset_store
from signin.services.checkin_service import CheckinService
from signin.services.directory_service import parse_uuid
from signin.services.portal_service import INVALID_KEY_OR_LOCATION, PortalService
from signin.utils.timezone import format_http_date, to_unix

router = APIRouter()
logger = logging.getLogger(__name__)

BACKGROUND_CACHE_CONTROL = "public, max-age=300, stale-while-revalidate=300"


def background_url(db: Session) -> Optional[str]:
    """
    Cache-busting URL of the portal background, or None when unset.

    The background is optional: a storage failure is logged and the portal
    config is served without it.
    """
    try:
        updated_at = get_asset_store(db, settings).get_updated_at(PORTAL_BACKGROUND_KEY)
    except SigninError as e:
        logger.warning(f"Portal background lookup failed: {e.message}")
        return None
    if updated_at is None:
        return None
    return f"/api/portal/background?ts={to_unix(updated_at)}"


@router.get("/config", response_model=PortalConfigResponse)
def portal_config(
    key: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """Location details and the users allowed to check in there."""
    key = (key or "").strip()
    location = (location or "").strip()
    if not key or not location:
        raise InvalidInputError("key and location are required")

    try:
        resolved, _key = PortalService(db).authorize(key, location)
    except NotFoundError:
        raise ForbiddenError(INVALID_KEY_OR_LOCATION)

    users = AccessService(db).effective_users_for_location(resolved.id)

    return PortalConfigResponse(
        location=PortalLocation.model_validate(resolved),
        users=[PortalUser.model_validate(user) for user in users],
        background_image_url=background_url(db),
    )


@router.post("/checkin", status_code=201)
def portal_checkin(payload: PortalCheckinRequest, db: Session = Depends(get_db)):
    """Record a check-in or check-out."""
    required = {
        "key": payload.key,
        "location": payload.location,
        "userId": payload.user_id,
        "direction": payload.direction,
    }
    missing = {name: f"{name} is required" for name, value in required.items() if not (value or "").strip()}
    if missing:
        raise InvalidInputError("missing required fields", missing)

    user_id = parse_uuid(payload.user_id.strip())
    if user_id is None:
        raise InvalidInputError("invalid body", {"userId": "must be a UUID"})

    CheckinService(db).record_checkin(
        key_value=payload.key,
        identifier=payload.location,
        user_id=user_id,
        direction=payload.direction,
        notes=payload.notes,
    )
    return JSONResponse(status_code=201, content={})


@router.get("/background")
def portal_background(db: Session = Depends(get_db)):
    """Serve the portal background image."""
    asset = get_asset_store(db, settings).get(PORTAL_BACKGROUND_KEY)
    if asset is None:
        raise NotFoundError("background not set")

    return Response(
        content=asset.data,
        media_type=asset.content_type,
        headers={
            "Cache-Control": BACKGROUND_CACHE_CONTROL,
            "Last-Modified": format_http_date(asset.updated_at),
        }
    )
