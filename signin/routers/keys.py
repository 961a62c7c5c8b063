"""Portal key management API endpoints (admin only)."""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session
from typing import List
import logging

from signin.database import get_db
from signin.models import Key, Location
from signin.schemas.key import KeyCreate, KeyLocationSummary, KeyResponse, KeyUpdate
from signin.services.access_service import Viewer
from signin.services.auth_service import require_admin
from signin.services.key_service import KeyService

router = APIRouter()
logger = logging.getLogger(__name__)


def to_response(key: Key, locations: List[Location]) -> KeyResponse:
    return KeyResponse(
        id=key.id,
        description=key.description,
        key_value=key.key_value,
        location_ids=[location.id for location in locations],
        locations=[KeyLocationSummary.model_validate(location) for location in locations],
        last_used_at=key.last_used_at,
        created_at=key.created_at,
        updated_at=key.updated_at,
    )


@router.get("", response_model=List[KeyResponse])
def list_keys(viewer: Viewer = Depends(require_admin), db: Session = Depends(get_db)):
    """List all keys with their locations."""
    service = KeyService(db)
    keys = service.list_keys()
    locations = service.locations_for([key.id for key in keys])
    return [to_response(key, locations[key.id]) for key in keys]


@router.get("/{key_id}", response_model=KeyResponse)
def get_key(key_id: str, viewer: Viewer = Depends(require_admin), db: Session = Depends(get_db)):
    service = KeyService(db)
    key = service.get(key_id)
    return to_response(key, service.locations_for([key.id])[key.id])


@router.post("", response_model=KeyResponse, status_code=201)
def create_key(payload: KeyCreate, viewer: Viewer = Depends(require_admin), db: Session = Depends(get_db)):
    """Create a key. Leave keyValue blank to generate one."""
    service = KeyService(db)
    key = service.create(
        description=payload.description,
        key_value=payload.key_value,
        location_ids=payload.location_ids,
    )
    logger.info(f"{viewer.upn} created key {key.id}")
    return to_response(key, service.locations_for([key.id])[key.id])


@router.patch("/{key_id}", response_model=KeyResponse)
def update_key(
    key_id: str,
    payload: KeyUpdate,
    viewer: Viewer = Depends(require_admin),
    db: Session = Depends(get_db)
):
    service = KeyService(db)
    key = service.update(
        key_id,
        description=payload.description,
        key_value=payload.key_value,
        location_ids=payload.location_ids,
    )
    logger.info(f"{viewer.upn} updated key {key.id}")
    return to_response(key, service.locations_for([key.id])[key.id])


@router.delete("/{key_id}", status_code=204)
def delete_key(key_id: str, viewer: Viewer = Depends(require_admin), db: Session = Depends(get_db)):
    """Delete a key. Check-ins made with it keep their row with no key."""
    KeyService(db).delete(key_id)
    logger.info(f"{viewer.upn} deleted key {key_id}")
    return Response(status_code=204)
