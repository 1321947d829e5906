"""Abstract base class for remote store adapters.

A remote store holds the canonical off-device snapshot. It may be slow,
unreachable or failing at any moment; callers in the sync layer never let
its exceptions escape. Adapters implement a handful of generic primitives
and inherit the entity-specific helpers defined here.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Set, TypeVar

from ..models import (
    BorrowRequest,
    Component,
    EntityKind,
    LoginSession,
    Notification,
    SystemData,
    User,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")


class RemoteStoreError(Exception):
    """Base exception for remote store operations."""
    pass


class AuthenticationError(RemoteStoreError):
    """Authentication failed with the remote service."""
    pass


class NetworkError(RemoteStoreError):
    """Network connectivity issues or a failing remote service."""
    pass


class RemoteNotFoundError(RemoteStoreError):
    """The addressed remote record does not exist."""
    pass


@dataclass
class RemoteResult(Generic[T]):
    """Outcome of one remote call: a value on success, a reason on failure."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "RemoteResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "RemoteResult[T]":
        return cls(ok=False, error=error)


async def call_remote(awaitable: Awaitable[T], timeout: Optional[float] = None) -> RemoteResult[T]:
    """Await a remote call and capture its outcome as a RemoteResult.

    Args:
        awaitable: The remote coroutine to run
        timeout: Seconds before the call counts as failed; None waits forever

    Returns:
        Success with the call's value, or failure with a readable reason
    """
    try:
        if timeout is None:
            value = await awaitable
        else:
            value = await asyncio.wait_for(awaitable, timeout=timeout)
        return RemoteResult.success(value)
    except asyncio.TimeoutError as e:
        if timeout is None:
            return RemoteResult.failure(f"TimeoutError: {e}")
        return RemoteResult.failure(f"timed out after {timeout}s")
    except Exception as e:
        return RemoteResult.failure(f"{type(e).__name__}: {e}")


@dataclass
class AuthUser:
    """Identity returned by the remote auth primitives."""

    uid: str
    email: str
    token: Optional[str] = None


@dataclass
class MigrationReport:
    """Outcome of a first-run bulk push."""

    pushed: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


AuthListener = Callable[[Optional[AuthUser]], Any]


class RemoteStore(ABC):
    """Base class for all remote store adapters."""

    def __init__(self):
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")
        self._auth_listeners: List[AuthListener] = []
        self._listener_tasks: Set[asyncio.Task] = set()
        self.current_user: Optional[AuthUser] = None

    # Abstract primitives that must be implemented by subclasses

    @abstractmethod
    async def fetch_collection(self, kind: EntityKind) -> List[Any]:
        """Fetch every entity of one collection.

        Raises:
            NetworkError: If the remote cannot be reached
        """
        pass

    @abstractmethod
    async def create_entity(self, kind: EntityKind, entity: Any) -> None:
        """Create (or overwrite) an entity under its own id."""
        pass

    @abstractmethod
    async def update_entity(self, kind: EntityKind, entity_id: str, partial: Dict[str, Any]) -> None:
        """Apply a partial wire record to an existing entity.

        Raises:
            RemoteNotFoundError: If the entity does not exist remotely
        """
        pass

    @abstractmethod
    async def delete_entity(self, kind: EntityKind, entity_id: str) -> None:
        """Delete an entity by id."""
        pass

    @abstractmethod
    async def test_connection(self) -> bool:
        """Return True if the remote service is reachable."""
        pass

    @abstractmethod
    async def _sign_in(self, email: str, password: str) -> AuthUser:
        pass

    @abstractmethod
    async def _sign_up(self, email: str, password: str) -> AuthUser:
        pass

    @abstractmethod
    async def _sign_out(self) -> None:
        pass

    # Snapshot operations

    async def fetch_snapshot(self) -> SystemData:
        """Fetch the full remote snapshot, one collection at a time."""
        data = SystemData()
        for kind in EntityKind:
            entities = await self.fetch_collection(kind)
            data.collection(kind).extend(entities)
        return data

    async def migrate_snapshot(self, data: SystemData, timeout: Optional[float] = None) -> MigrationReport:
        """Push every entity of a snapshot, isolating per-entity failures.

        A failed push is logged and counted; it is not retried and does not
        stop the remaining pushes.

        Args:
            data: Snapshot to push
            timeout: Per-entity timeout in seconds; None waits forever
        """
        report = MigrationReport()
        for kind in EntityKind:
            for entity in data.collection(kind):
                result = await call_remote(self.create_entity(kind, entity), timeout=timeout)
                if result.ok:
                    report.pushed += 1
                else:
                    report.failed += 1
                    message = f"{kind.value}/{entity.id}: {result.error}"
                    report.errors.append(message)
                    self.logger.warning(f"Failed to migrate {message}")
        self.logger.info(f"Migration pushed {report.pushed} entities, {report.failed} failed")
        return report

    # Entity helpers

    async def create_user(self, user: User) -> None:
        await self.create_entity(EntityKind.USERS, user)

    async def update_user(self, user_id: str, partial: Dict[str, Any]) -> None:
        await self.update_entity(EntityKind.USERS, user_id, partial)

    async def create_component(self, component: Component) -> None:
        await self.create_entity(EntityKind.COMPONENTS, component)

    async def update_component(self, component_id: str, partial: Dict[str, Any]) -> None:
        await self.update_entity(EntityKind.COMPONENTS, component_id, partial)

    async def delete_component(self, component_id: str) -> None:
        await self.delete_entity(EntityKind.COMPONENTS, component_id)

    async def create_request(self, request: BorrowRequest) -> None:
        await self.create_entity(EntityKind.REQUESTS, request)

    async def update_request(self, request_id: str, partial: Dict[str, Any]) -> None:
        await self.update_entity(EntityKind.REQUESTS, request_id, partial)

    async def create_notification(self, notification: Notification) -> None:
        await self.create_entity(EntityKind.NOTIFICATIONS, notification)

    async def mark_notification_as_read(self, notification_id: str) -> None:
        await self.update_entity(EntityKind.NOTIFICATIONS, notification_id, {"read": True})

    async def create_login_session(self, session: LoginSession) -> None:
        await self.create_entity(EntityKind.LOGIN_SESSIONS, session)

    async def update_login_session(self, session_id: str, partial: Dict[str, Any]) -> None:
        await self.update_entity(EntityKind.LOGIN_SESSIONS, session_id, partial)

    async def get_all_login_sessions(self) -> List[LoginSession]:
        return await self.fetch_collection(EntityKind.LOGIN_SESSIONS)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        wanted = email.strip().lower()
        for user in await self.fetch_collection(EntityKind.USERS):
            if user.email.lower() == wanted:
                return user
        return None

    # Auth

    async def sign_in(self, email: str, password: str) -> AuthUser:
        """Sign in and notify auth listeners.

        Raises:
            AuthenticationError: If the credentials are rejected
        """
        self.current_user = await self._sign_in(email, password)
        self._notify_auth_listeners()
        return self.current_user

    async def sign_up(self, email: str, password: str) -> AuthUser:
        """Create a remote account, sign it in and notify auth listeners."""
        self.current_user = await self._sign_up(email, password)
        self._notify_auth_listeners()
        return self.current_user

    async def sign_out(self) -> None:
        await self._sign_out()
        self.current_user = None
        self._notify_auth_listeners()

    def on_auth_state_changed(self, listener: AuthListener) -> Callable[[], None]:
        """Register a listener for sign-in/sign-out; returns an unsubscribe callable."""
        self._auth_listeners.append(listener)

        def unsubscribe():
            if listener in self._auth_listeners:
                self._auth_listeners.remove(listener)

        return unsubscribe

    def _notify_auth_listeners(self):
        for listener in list(self._auth_listeners):
            try:
                outcome = listener(self.current_user)
                if asyncio.iscoroutine(outcome):
                    task = asyncio.ensure_future(outcome)
                    self._listener_tasks.add(task)
                    task.add_done_callback(self._listener_tasks.discard)
            except Exception as e:
                self.logger.error(f"Auth state listener failed: {e}")

    async def close(self) -> None:
        """Release network resources."""
        pass
