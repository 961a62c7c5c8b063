"""
Directory sync: mirrors directory users and groups into the database.

Each row is written independently and idempotently, so a run that is cut
short is simply repeated in full on the next tick.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from signin.config import Settings
from signin.errors import SigninError
from signin.models import Group, User
from signin.services.directory_service import DirectoryService
from signin.services.graph_client import DirectoryGroup, DirectoryUser
from signin.utils.timezone import utc_now

logger = logging.getLogger(__name__)

# Marker Entra ID puts in the UPN of B2B guest accounts
GUEST_MARKER = "#EXT#"


class DirectoryProvider(Protocol):
    def list_users(self) -> List[DirectoryUser]: ...

    def list_groups(self) -> List[DirectoryGroup]: ...


def is_excluded_user(user: DirectoryUser) -> bool:
    """Disabled accounts and external guests are not mirrored."""
    return not user.active or GUEST_MARKER in (user.upn or "").upper()


class DirectorySyncService:
    """Applies directory snapshots to the local mirror."""

    def __init__(self, db: Session, deadline: Optional[float] = None):
        self.db = db
        self.directory = DirectoryService(db)
        # time.monotonic() value after which no further rows are started
        self.deadline = deadline

    def _out_of_time(self, job: str) -> bool:
        if self.deadline is None or time.monotonic() < self.deadline:
            return False
        logger.warning(f"{job} sync stopped at its deadline; remaining rows wait for the next run")
        return True

    def sync_users(self, users: Iterable[DirectoryUser]) -> Dict[str, int]:
        """
        Upsert active users and delete excluded ones.

        A failing row is rolled back and logged; the rest of the run continues.
        Past the deadline no further rows are started.

        Returns:
            Counters: upserted, deleted, failed
        """
        stats = {"upserted": 0, "deleted": 0, "failed": 0}

        for directory_user in users:
            if self._out_of_time("User"):
                break
            try:
                if is_excluded_user(directory_user):
                    if self._delete_user(directory_user):
                        stats["deleted"] += 1
                else:
                    self.directory.upsert_user(
                        upn=directory_user.upn,
                        display_name=directory_user.display_name,
                        department=directory_user.department,
                        object_id=directory_user.object_id or None,
                    )
                    stats["upserted"] += 1
                self.db.commit()
            except (SQLAlchemyError, SigninError) as e:
                self.db.rollback()
                stats["failed"] += 1
                logger.error(f"Failed to sync user '{directory_user.upn}': {e}")

        logger.info(
            f"User sync complete: {stats['upserted']} upserted, "
            f"{stats['deleted']} deleted, {stats['failed']} failed"
        )
        return stats

    def _delete_user(self, directory_user: DirectoryUser) -> bool:
        user = None
        if directory_user.object_id:
            user = self.directory.get_user_by_object_id(directory_user.object_id)
        if user is None and directory_user.upn:
            user = self.directory.get_user_by_upn(directory_user.upn)
        if user is None:
            return False

        logger.info(f"Removing excluded directory user '{user.upn}'")
        self.directory.delete_user(user)
        return True

    def sync_groups(self, groups: Iterable[DirectoryGroup], prune: bool = True) -> Dict[str, int]:
        """
        Upsert groups and replace each group's membership wholesale.

        Membership replacement runs inside the group's own transaction, so a
        failure leaves that group's previous members intact. Members unknown
        locally are skipped. With ``prune``, local groups missing from the
        snapshot are deleted afterwards, unless the run stopped at its deadline
        and so did not see every group.

        Returns:
            Counters: upserted, members, pruned, failed
        """
        stats = {"upserted": 0, "members": 0, "pruned": 0, "failed": 0}
        seen_object_ids = set()
        user_ids_by_object_id = self._user_ids_by_object_id()
        interrupted = False

        for directory_group in groups:
            if self._out_of_time("Group"):
                interrupted = True
                break
            seen_object_ids.add(directory_group.object_id)
            try:
                group = self.directory.upsert_group(
                    object_id=directory_group.object_id,
                    display_name=directory_group.display_name,
                    description=directory_group.description,
                )
                member_ids = [
                    user_ids_by_object_id[object_id]
                    for object_id in directory_group.member_ids
                    if object_id in user_ids_by_object_id
                ]
                stats["members"] += self.directory.replace_group_members(group.id, member_ids)
                self.db.commit()
                stats["upserted"] += 1
            except (SQLAlchemyError, SigninError) as e:
                self.db.rollback()
                stats["failed"] += 1
                logger.error(f"Failed to sync group '{directory_group.display_name}': {e}")

        if prune and not interrupted:
            stats["pruned"] = self._prune_groups(seen_object_ids)

        logger.info(
            f"Group sync complete: {stats['upserted']} upserted, {stats['members']} memberships, "
            f"{stats['pruned']} pruned, {stats['failed']} failed"
        )
        return stats

    def _user_ids_by_object_id(self) -> Dict[str, str]:
        rows = self.db.query(User.id, User.object_id).filter(User.object_id.isnot(None)).all()
        return {row.object_id: row.id for row in rows}

    def _prune_groups(self, seen_object_ids: set) -> int:
        stale = (
            self.db.query(Group)
            .filter(Group.object_id.isnot(None))
            .all()
        )
        pruned = 0
        for group in stale:
            if group.object_id in seen_object_ids:
                continue
            try:
                self.directory.delete_group(group)
                self.db.commit()
                pruned += 1
                logger.info(f"Pruned group '{group.display_name}' no longer in directory")
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Failed to prune group '{group.display_name}': {e}")
        return pruned


@dataclass
class SyncJobResult:
    job: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    ok: bool = False
    error: Optional[str] = None
    stats: Dict[str, int] = field(default_factory=dict)


class DirectorySyncWorker:
    """
    Background service running user and group sync on a fixed interval.

    Each job runs in a worker thread with its own session and a timeout.
    A thread cannot be cancelled, so on timeout the job is reported as
    failed while its thread keeps going until the next row boundary, where
    the shared deadline stops it. A failing job is logged and does not stop
    the other one; the next tick is the retry.
    """

    def __init__(
        self,
        config: Settings,
        provider: DirectoryProvider,
        session_factory: Callable[[], Session],
    ):
        self.config = config
        self.provider = provider
        self.session_factory = session_factory
        self.running = False
        self.results: Dict[str, SyncJobResult] = {}
        self._run_lock = asyncio.Lock()

    async def start(self):
        """Start the sync loop."""
        if self.running:
            logger.warning("Directory sync already running")
            return

        self.running = True
        logger.info(f"Directory sync started (every {self.config.SYNC_INTERVAL_SECONDS}s)")

        while self.running:
            await self.run_once()
            await asyncio.sleep(self.config.SYNC_INTERVAL_SECONDS)

    def stop(self):
        """Stop the sync loop."""
        self.running = False
        logger.info("Directory sync stopped")

    async def run_once(self) -> Dict[str, SyncJobResult]:
        """Run the user job then the group job."""
        async with self._run_lock:
            await self._run_job("users", self._sync_users)
            await self._run_job("groups", self._sync_groups)
        return dict(self.results)

    async def _run_job(self, name: str, job: Callable[[float], Dict[str, int]]) -> SyncJobResult:
        result = SyncJobResult(job=name, started_at=utc_now())
        deadline = time.monotonic() + self.config.SYNC_TIMEOUT_SECONDS
        try:
            result.stats = await asyncio.wait_for(
                asyncio.to_thread(job, deadline),
                timeout=self.config.SYNC_TIMEOUT_SECONDS,
            )
            result.ok = True
        except asyncio.TimeoutError:
            result.error = f"timed out after {self.config.SYNC_TIMEOUT_SECONDS}s"
            logger.error(f"Directory sync job '{name}' {result.error}")
        except Exception as e:
            result.error = str(e)
            logger.error(f"Directory sync job '{name}' failed: {e}", exc_info=True)
        finally:
            result.finished_at = utc_now()
            self.results[name] = result
        return result

    def _sync_users(self, deadline: float) -> Dict[str, int]:
        users = self.provider.list_users()
        db = self.session_factory()
        try:
            return DirectorySyncService(db, deadline=deadline).sync_users(users)
        finally:
            db.close()

    def _sync_groups(self, deadline: float) -> Dict[str, int]:
        # A fetch failure raises before anything is written or pruned
        groups = self.provider.list_groups()
        db = self.session_factory()
        try:
            return DirectorySyncService(db, deadline=deadline).sync_groups(groups, prune=self.config.SYNC_PRUNE_GROUPS)
        finally:
            db.close()
