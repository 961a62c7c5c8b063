"""Directory sync control endpoints (admin only)."""

from fastapi import APIRouter, BackgroundTasks, Depends, Request
import logging

from signin.errors import InvalidInputError
from signin.schemas.sync import SyncJobStatus, SyncStatusResponse
from signin.services.access_service import Viewer
from signin.services.auth_service import require_admin

router = APIRouter()
logger = logging.getLogger(__name__)


def status_response(request: Request) -> SyncStatusResponse:
    worker = getattr(request.app.state, "sync_worker", None)
    if worker is None:
        return SyncStatusResponse(enabled=False, running=False, jobs=[])
    return SyncStatusResponse(
        enabled=True,
        running=worker.running,
        jobs=[SyncJobStatus.model_validate(result) for result in worker.results.values()],
    )


@router.get("", response_model=SyncStatusResponse)
def sync_status(request: Request, viewer: Viewer = Depends(require_admin)):
    """Outcome of the most recent run of each sync job."""
    return status_response(request)


@router.post("", response_model=SyncStatusResponse, status_code=202)
def trigger_sync(
    request: Request,
    background_tasks: BackgroundTasks,
    viewer: Viewer = Depends(require_admin)
):
    """Queue an immediate directory sync run."""
    worker = getattr(request.app.state, "sync_worker", None)
    if worker is None:
        raise InvalidInputError("directory sync is not configured")

    background_tasks.add_task(worker.run_once)
    logger.info(f"{viewer.upn} triggered a directory sync")
    return status_response(request)
