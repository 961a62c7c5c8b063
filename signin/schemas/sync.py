"""Directory sync status schemas."""

from datetime import datetime
from typing import Dict, List, Optional

from signin.schemas.base import CamelModel


class SyncJobStatus(CamelModel):
    job: str
    ok: bool
    started_at: datetime
    finished_at: Optional[datetime] = None
    error: Optional[str] = None
    stats: Dict[str, int] = {}


class SyncStatusResponse(CamelModel):
    enabled: bool
    running: bool
    jobs: List[SyncJobStatus]
