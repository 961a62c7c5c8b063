"""Directory user API endpoints (admin only)."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from signin.database import get_db
from signin.schemas.user import (
    GroupResponse,
    UserAccessUpdate,
    UserDetailResponse,
    UserResponse,
)
from signin.services.access_service import AccessService, Viewer
from signin.services.auth_service import require_admin
from signin.services.directory_service import DirectoryService

router = APIRouter()
logger = logging.getLogger(__name__)


def user_detail(db: Session, user_id: str) -> UserDetailResponse:
    directory = DirectoryService(db)
    access = AccessService(db)
    user = directory.get_user(user_id)
    return UserDetailResponse(
        user=UserResponse.model_validate(user),
        location_ids=access.location_ids_for_user(user.id),
        groups=[GroupResponse.model_validate(group) for group in directory.groups_for_user(user.id)],
        portal_location_ids=access.portal_location_ids_for_user(user.id),
    )


@router.get("", response_model=List[UserResponse])
def list_users(
    search: Optional[str] = Query(None),
    viewer: Viewer = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """List mirrored directory users."""
    return DirectoryService(db).list_users(search)


@router.get("/{user_id}", response_model=UserDetailResponse)
def get_user(user_id: str, viewer: Viewer = Depends(require_admin), db: Session = Depends(get_db)):
    """A user with grants, groups and portal locations."""
    return user_detail(db, user_id)


@router.patch("/{user_id}", response_model=UserDetailResponse)
def update_user(
    user_id: str,
    payload: UserAccessUpdate,
    viewer: Viewer = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Change a user's admin flag and/or direct location grants."""
    DirectoryService(db).update_user_access(
        user_id,
        is_admin=payload.is_admin,
        location_ids=payload.location_ids,
    )
    logger.info(f"{viewer.upn} updated access for user {user_id}")
    return user_detail(db, user_id)
