"""Admin settings API endpoints: portal background image."""

from fastapi import APIRouter, Depends, File, Response, UploadFile
from sqlalchemy.orm import Session
import logging
from typing import Optional

from signin.config import settings
from signin.database import get_db
from signin.errors import InvalidInputError
from signin.schemas.settings import PortalBackgroundResponse
from signin.services.access_service import Viewer
from signin.services.asset_service import PORTAL_BACKGROUND_KEY, StoredAsset, get_asset_store
from signin.services.auth_service import require_admin
from signin.utils.timezone import to_unix

router = APIRouter()
logger = logging.getLogger(__name__)

ALLOWED_BACKGROUND_TYPES = {"image/jpeg", "image/pjpeg"}


def background_response(asset: Optional[StoredAsset]) -> PortalBackgroundResponse:
    if asset is None:
        return PortalBackgroundResponse(has_image=False)
    return PortalBackgroundResponse(
        has_image=True,
        url=f"/api/portal/background?ts={to_unix(asset.updated_at)}",
        content_type=asset.content_type,
        updated_at=asset.updated_at,
    )


@router.get("/portal-background", response_model=PortalBackgroundResponse)
def get_portal_background(viewer: Viewer = Depends(require_admin), db: Session = Depends(get_db)):
    """Whether a portal background is set, and where to fetch it."""
    return background_response(get_asset_store(db, settings).get(PORTAL_BACKGROUND_KEY))


@router.post("/portal-background", response_model=PortalBackgroundResponse)
async def upload_portal_background(
    file: UploadFile = File(...),
    viewer: Viewer = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Replace the portal background. JPEG only."""
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if content_type not in ALLOWED_BACKGROUND_TYPES:
        raise InvalidInputError("background must be a JPEG image", {"file": "only JPEG images are supported"})

    max_bytes = settings.PORTAL_BACKGROUND_MAX_BYTES
    # Read one byte past the limit to detect oversize uploads without buffering them whole
    data = await file.read(max_bytes + 1)
    if not data:
        raise InvalidInputError("file is empty", {"file": "file is empty"})
    if len(data) > max_bytes:
        message = f"file exceeds {max_bytes // (1024 * 1024)} MiB limit"
        raise InvalidInputError(message, {"file": message})

    asset = get_asset_store(db, settings).put(PORTAL_BACKGROUND_KEY, "image/jpeg", data)
    logger.info(f"{viewer.upn} uploaded a portal background ({len(data)} bytes)")
    return background_response(asset)


@router.delete("/portal-background", status_code=204)
def delete_portal_background(viewer: Viewer = Depends(require_admin), db: Session = Depends(get_db)):
    """Remove the portal background."""
    get_asset_store(db, settings).delete(PORTAL_BACKGROUND_KEY)
    logger.info(f"{viewer.upn} removed the portal background")
    return Response(status_code=204)
