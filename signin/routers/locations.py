"""Location management API endpoints."""

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from signin.database import get_db
from signin.errors import ForbiddenError
from signin.models import Location
from signin.schemas.location import LocationCreate, LocationResponse, LocationUpdate
from signin.services.access_service import AccessService, Viewer
from signin.services.auth_service import get_current_viewer, require_admin
from signin.services.location_service import LocationService

router = APIRouter()
logger = logging.getLogger(__name__)


def to_response(location: Location, group_ids: List[str]) -> LocationResponse:
    return LocationResponse(
        id=location.id,
        name=location.name,
        identifier=location.identifier,
        notes_enabled=location.notes_enabled,
        group_ids=group_ids,
        created_at=location.created_at,
        updated_at=location.updated_at,
    )


@router.get("", response_model=List[LocationResponse])
def list_locations(
    search: Optional[str] = Query(None),
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db)
):
    """Locations visible to the caller."""
    locations = AccessService(db).visible_locations(viewer, search)
    group_ids = LocationService(db).group_ids_for([location.id for location in locations])
    return [to_response(location, group_ids[location.id]) for location in locations]


@router.get("/{location_id}", response_model=LocationResponse)
def get_location(
    location_id: str,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db)
):
    """Get a location. Non-admins need a direct grant."""
    if not AccessService(db).viewer_can_access_location(viewer, location_id):
        raise ForbiddenError("insufficient permissions")

    service = LocationService(db)
    location = service.get(location_id)
    return to_response(location, service.group_ids(location.id))


@router.post("", response_model=LocationResponse, status_code=201)
def create_location(
    payload: LocationCreate,
    viewer: Viewer = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Create a location."""
    service = LocationService(db)
    location = service.create(
        name=payload.name,
        identifier=payload.identifier,
        group_ids=payload.group_ids,
        notes_enabled=payload.notes_enabled,
    )
    logger.info(f"{viewer.upn} created location '{location.identifier}'")
    return to_response(location, service.group_ids(location.id))


@router.patch("/{location_id}", response_model=LocationResponse)
def update_location(
    location_id: str,
    payload: LocationUpdate,
    viewer: Viewer = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Partially update a location."""
    service = LocationService(db)
    location = service.update(
        location_id,
        name=payload.name,
        identifier=payload.identifier,
        group_ids=payload.group_ids,
        notes_enabled=payload.notes_enabled,
    )
    logger.info(f"{viewer.upn} updated location '{location.identifier}'")
    return to_response(location, service.group_ids(location.id))


@router.delete("/{location_id}", status_code=204)
def delete_location(
    location_id: str,
    viewer: Viewer = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Delete a location along with its check-ins and grants."""
    LocationService(db).delete(location_id)
    logger.info(f"{viewer.upn} deleted location {location_id}")
    return Response(status_code=204)
