"""Directory group API endpoints (admin only)."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from signin.database import get_db
from signin.schemas.user import GroupMembersResponse, GroupResponse, UserResponse
from signin.services.access_service import Viewer
from signin.services.auth_service import require_admin
from signin.services.directory_service import DirectoryService

router = APIRouter()


@router.get("", response_model=List[GroupResponse])
def list_groups(
    search: Optional[str] = Query(None),
    viewer: Viewer = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return DirectoryService(db).list_groups(search)


@router.get("/{group_id}", response_model=GroupResponse)
def get_group(group_id: str, viewer: Viewer = Depends(require_admin), db: Session = Depends(get_db)):
    return DirectoryService(db).get_group(group_id)


@router.get("/{group_id}/members", response_model=GroupMembersResponse)
def list_group_members(group_id: str, viewer: Viewer = Depends(require_admin), db: Session = Depends(get_db)):
    """Members of a group as of the last directory sync."""
    directory = DirectoryService(db)
    group = directory.get_group(group_id)
    members = directory.group_members(group_id)
    return GroupMembersResponse(
        group=GroupResponse.model_validate(group),
        members=[UserResponse.model_validate(member) for member in members],
        member_ids=[member.id for member in members],
        count=len(members),
    )
