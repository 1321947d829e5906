"""Sync orchestrator coordinating the local and remote stores.

Every mutation is written to the local store first and synchronously, then,
when online, mirrored to the remote store best-effort. Reads are served from
the local store only. Synchronization passes pull the remote snapshot and
either reconcile it into the local store or, when the remote is empty, push
the local data up as a first-run migration.

This module provides the SyncService class, which is constructed once by
the application's composition root with its adapters injected.
"""

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Set

from .config import SyncSettings
from .connectivity import ConnectivityMonitor
from .models import (
    BorrowRequest,
    Component,
    LoginSession,
    Notification,
    SystemData,
    SystemStats,
    User,
)
from .reconcile import is_empty_snapshot, reconcile
from .remote.base import RemoteResult, RemoteStore, call_remote
from .storage import LocalStore
from .utils.datetime import now_utc, to_iso_string


logger = logging.getLogger(__name__)


class SyncStatus(Enum):
    """Outcome of a synchronization pass."""
    MERGED = "merged"
    MIGRATED = "migrated"
    FAILED = "failed"
    SKIPPED_OFFLINE = "skipped_offline"
    SKIPPED_IN_PROGRESS = "skipped_in_progress"


@dataclass
class SyncResult:
    """Result of one synchronization pass."""

    status: SyncStatus
    started_at: datetime = field(default_factory=now_utc)
    completed_at: Optional[datetime] = None
    items_pushed: int = 0
    items_failed: int = 0
    items_adopted: int = 0
    items_kept_local: int = 0
    items_overridden: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.status in (SyncStatus.SKIPPED_OFFLINE, SyncStatus.SKIPPED_IN_PROGRESS)

    @property
    def succeeded(self) -> bool:
        return self.status in (SyncStatus.MERGED, SyncStatus.MIGRATED)

    def add_error(self, error: str):
        self.errors.append(error)

    def complete(self):
        self.completed_at = now_utc()

    def duration_seconds(self) -> float:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0


@dataclass
class ConnectionStatus:
    """Snapshot of the orchestrator's two flags."""

    online: bool
    sync_in_progress: bool


RemoteCall = Callable[[], Awaitable[Any]]


class SyncService:
    """Local-first, remote-best-effort data service.

    Holds two flags: ``online`` (from the connectivity monitor) and
    ``sync_in_progress``. The latter is a mutual-exclusion flag, not a
    queue: a pass requested while another is running is dropped.
    """

    def __init__(self, local: LocalStore, remote: RemoteStore,
                 monitor: ConnectivityMonitor, settings: Optional[SyncSettings] = None,
                 clock: Callable[[], datetime] = now_utc):
        """Initialize the service and subscribe to connectivity transitions.

        Args:
            local: Local store adapter
            remote: Remote store adapter
            monitor: Connectivity monitor; going online triggers a sync pass
            settings: Orchestrator settings
            clock: Returns the current aware datetime; injectable for tests
        """
        self.local = local
        self.remote = remote
        self.monitor = monitor
        self.settings = settings or SyncSettings()
        self.clock = clock
        self.sync_history: List[SyncResult] = []
        self.logger = logging.getLogger(__name__)

        self._sync_in_progress = False
        self._mirror_tasks: Set[asyncio.Task] = set()
        self._unsubscribers = [
            monitor.on_online(self._handle_online),
            monitor.on_offline(self._handle_offline),
        ]

    @property
    def is_online(self) -> bool:
        return self.monitor.is_online

    @property
    def sync_in_progress(self) -> bool:
        return self._sync_in_progress

    def get_connection_status(self) -> ConnectionStatus:
        return ConnectionStatus(online=self.is_online, sync_in_progress=self._sync_in_progress)

    # Lifecycle

    async def start(self) -> Optional[SyncResult]:
        """Run the startup sync pass when online and enabled."""
        if not self.settings.sync_on_startup:
            return None
        if not self.is_online:
            self.logger.info("Starting offline, serving local data")
            return None
        return await self.sync_with_remote()

    async def close(self) -> None:
        """Unsubscribe from the monitor and wait for background mirror writes."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        await self.drain_mirrors()

    async def drain_mirrors(self) -> None:
        """Wait until every background mirror write has finished."""
        while True:
            pending = [task for task in self._mirror_tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def _handle_online(self):
        self.logger.info("Connectivity restored, starting sync")
        await self.sync_with_remote()

    def _handle_offline(self):
        self.logger.info("Connectivity lost, remote writes paused")

    # Synchronization passes

    async def sync_with_remote(self) -> SyncResult:
        """Run one synchronization pass.

        Returns:
            The pass result; skipped when offline or when a pass is in flight
        """
        if not self.is_online:
            self.logger.debug("Sync skipped: offline")
            return SyncResult(status=SyncStatus.SKIPPED_OFFLINE)
        if self._sync_in_progress:
            self.logger.debug("Sync skipped: another pass is in progress")
            return SyncResult(status=SyncStatus.SKIPPED_IN_PROGRESS)

        # Set before the first suspension point
        self._sync_in_progress = True
        result = SyncResult(status=SyncStatus.FAILED)
        try:
            local_data = self.local.get_data()

            fetched = await self._call_remote(self.remote.fetch_snapshot)
            if not fetched.ok:
                result.add_error(f"Failed to fetch remote snapshot: {fetched.error}")
                self.logger.error(f"Sync failed: {fetched.error}")
                return result

            remote_data: SystemData = fetched.value
            if is_empty_snapshot(remote_data):
                self.logger.info("Remote store is empty, migrating local data")
                await self._migrate(local_data, result)
            else:
                self.logger.info("Reconciling remote data with local store")
                # Re-read so writes made during the fetch are part of the merge
                self._merge(self.local.get_data(), remote_data, result)
        except Exception as e:
            result.status = SyncStatus.FAILED
            result.add_error(f"Sync failed: {e}")
            self.logger.exception(f"Sync failed: {e}")
        finally:
            self._sync_in_progress = False
            result.complete()
            self._record(result)

        self.logger.info(
            f"Sync {result.status.value} in {result.duration_seconds():.2f}s"
        )
        return result

    async def force_sync(self) -> SyncResult:
        """Manually trigger a pass; same guards as the reconnect trigger."""
        return await self.sync_with_remote()

    async def _migrate(self, local_data: SystemData, result: SyncResult):
        report = await self.remote.migrate_snapshot(
            local_data, timeout=self.settings.remote_timeout_seconds
        )
        result.status = SyncStatus.MIGRATED
        result.items_pushed = report.pushed
        result.items_failed = report.failed
        result.errors.extend(report.errors)

    def _merge(self, local_data: SystemData, remote_data: SystemData, result: SyncResult):
        merged, report = reconcile(local_data, remote_data)
        if report.overridden_ids:
            self.logger.warning(
                f"Remote copies replaced {report.overridden} local edits: "
                f"{', '.join(report.overridden_ids)}"
            )
        self.local.save_data(merged)
        result.status = SyncStatus.MERGED
        result.items_adopted = report.adopted_remote
        result.items_kept_local = report.kept_local
        result.items_overridden = report.overridden

    def _record(self, result: SyncResult):
        self.sync_history.append(result)
        excess = len(self.sync_history) - self.settings.max_history_entries
        if excess > 0:
            del self.sync_history[:excess]

    @property
    def last_successful_sync(self) -> Optional[SyncResult]:
        for result in reversed(self.sync_history):
            if result.succeeded:
                return result
        return None

    # Remote mirroring

    async def _call_remote(self, make_call: RemoteCall) -> RemoteResult:
        return await call_remote(make_call(), timeout=self.settings.remote_timeout_seconds)

    async def _run_mirror(self, description: str, make_call: RemoteCall) -> RemoteResult:
        result = await self._call_remote(make_call)
        if not result.ok:
            self.logger.warning(f"Failed to sync {description} to remote: {result.error}")
        return result

    async def _mirror(self, description: str, make_call: RemoteCall) -> None:
        """Mirror a local write to the remote store if online; never raises."""
        if not self.is_online:
            self.logger.debug(f"Offline, {description} stays local until the next sync")
            return
        if not self.settings.mirror_in_background:
            await self._run_mirror(description, make_call)
            return
        task = asyncio.get_running_loop().create_task(self._run_mirror(description, make_call))
        self._mirror_tasks.add(task)
        task.add_done_callback(self._mirror_tasks.discard)

    # Dual-write operations

    async def add_user(self, user: User) -> None:
        self.local.add_user(user)
        pushed = copy.deepcopy(user)
        await self._mirror(f"user {user.id}", lambda: self.remote.create_user(pushed))

    async def update_user(self, user: User) -> None:
        self.local.update_user(user)
        payload = user.to_dict()
        await self._mirror(f"user update {user.id}", lambda: self.remote.update_user(user.id, payload))

    async def add_component(self, component: Component) -> None:
        self.local.add_component(component)
        pushed = copy.deepcopy(component)
        await self._mirror(f"component {component.id}",
                           lambda: self.remote.create_component(pushed))

    async def update_component(self, component: Component) -> None:
        self.local.update_component(component)
        payload = component.to_dict()
        await self._mirror(f"component update {component.id}",
                           lambda: self.remote.update_component(component.id, payload))

    async def delete_component(self, component_id: str) -> bool:
        deleted = self.local.delete_component(component_id)
        await self._mirror(f"component deletion {component_id}",
                           lambda: self.remote.delete_component(component_id))
        return deleted

    async def add_request(self, request: BorrowRequest) -> None:
        self.local.add_request(request)
        pushed = copy.deepcopy(request)
        await self._mirror(f"request {request.id}", lambda: self.remote.create_request(pushed))

    async def update_request(self, request: BorrowRequest) -> None:
        self.local.update_request(request)
        payload = request.to_dict()
        await self._mirror(f"request update {request.id}",
                           lambda: self.remote.update_request(request.id, payload))

    async def add_notification(self, notification: Notification) -> None:
        self.local.add_notification(notification)
        pushed = copy.deepcopy(notification)
        await self._mirror(f"notification {notification.id}",
                           lambda: self.remote.create_notification(pushed))

    async def mark_notification_as_read(self, notification_id: str) -> bool:
        found = self.local.mark_notification_as_read(notification_id)
        await self._mirror(f"notification read status {notification_id}",
                           lambda: self.remote.mark_notification_as_read(notification_id))
        return found

    async def create_login_session(self, user: User) -> LoginSession:
        """Open a login session locally and mirror it with the user's counters."""
        session = self.local.create_login_session(user)
        pushed = copy.deepcopy(session)
        await self._mirror(f"login session {session.id}",
                           lambda: self.remote.create_login_session(pushed))

        stored = self.local.get_user(user.email)
        if stored is not None:
            activity = {
                "loginCount": stored.login_count,
                "isActive": stored.is_active,
                "lastLoginAt": to_iso_string(stored.last_login_at),
            }
            await self._mirror(f"user activity {stored.id}",
                               lambda: self.remote.update_user(stored.id, activity))
        return session

    async def end_login_session(self, user_id: str) -> List[LoginSession]:
        """Close the user's open sessions locally, then catch up remotely.

        The remote catch-up closes every remote session of the user that is
        still active, including ones opened offline and never mirrored.

        Returns:
            The local sessions that were closed
        """
        closed_at = self.clock()
        closed = self.local.end_login_session(user_id, at=closed_at)
        await self._mirror(f"session end for user {user_id}",
                           lambda: self._close_remote_sessions(user_id, closed_at))
        return closed

    async def _close_remote_sessions(self, user_id: str, closed_at: datetime) -> int:
        sessions = await self.remote.get_all_login_sessions()
        closed = 0
        for session in sessions:
            if session.user_id != user_id or not session.is_active:
                continue
            fields = session.closing_fields(closed_at)
            result = await self._run_mirror(
                f"session end {session.id}",
                lambda s=session, f=fields: self.remote.update_login_session(s.id, f),
            )
            if result.ok:
                closed += 1
        await self._run_mirror(f"user activity {user_id}",
                               lambda: self.remote.update_user(user_id, {"isActive": False}))
        return closed

    # Local-only writes

    def set_user_password(self, email: str, password: str) -> None:
        self.local.set_user_password(email, password)

    # Reads, served from the local store

    def get_data(self) -> SystemData:
        return self.local.get_data()

    def get_components(self) -> List[Component]:
        return self.local.get_components()

    def get_requests(self) -> List[BorrowRequest]:
        return self.local.get_requests()

    def get_user_requests(self, user_id: str) -> List[BorrowRequest]:
        return self.local.get_user_requests(user_id)

    def get_user_notifications(self, user_id: str) -> List[Notification]:
        return self.local.get_user_notifications(user_id)

    def get_login_sessions(self) -> List[LoginSession]:
        return self.local.get_login_sessions()

    def get_system_stats(self) -> SystemStats:
        return self.local.get_system_stats()

    def get_user(self, email: str) -> Optional[User]:
        return self.local.get_user(email)

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        return self.local.authenticate_user(email, password)

    def export_login_sessions_csv(self) -> str:
        return self.local.export_login_sessions_csv()
