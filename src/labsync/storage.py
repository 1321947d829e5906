"""Local store for labsync backed by a JSON document.

The local store owns the canonical on-device snapshot between sync passes.
It is always available: nothing here touches the network. The whole snapshot
is held in memory and rewritten atomically after every mutation.
"""

import csv
import json
import logging
import os
import tempfile
from io import StringIO
from pathlib import Path
from typing import Callable, Dict, List, Optional

import bcrypt

from .config import ConfigModel
from .models import (
    BorrowRequest,
    Component,
    EntityKind,
    LoginSession,
    Notification,
    SystemData,
    SystemStats,
    User,
    kind_of,
)
from .utils.datetime import now_utc, to_iso_string


logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12

SESSION_CSV_FIELDS = [
    "Session ID",
    "User ID",
    "User Name",
    "User Email",
    "Login Time",
    "Logout Time",
    "Duration (minutes)",
    "Status",
]


class LocalStoreError(Exception):
    """Base exception for local store failures."""
    pass


class DuplicateEntityError(LocalStoreError):
    """An entity with the same id already exists in its collection."""
    pass


class EntityNotFoundError(LocalStoreError):
    """The entity to update does not exist."""
    pass


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    if not isinstance(password, str):
        raise ValueError("password must be a string")
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against its bcrypt hash."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


class LocalStore:
    """File-backed local store for the five synchronized collections."""

    def __init__(self, path: Path, clock: Callable = now_utc):
        """Open (or create) the local store.

        Args:
            path: Location of the JSON document
            clock: Returns the current aware datetime; injectable for tests

        Raises:
            LocalStoreError: If an existing document cannot be read
        """
        self.path = Path(path)
        self.clock = clock
        self.logger = logging.getLogger(__name__)
        self._data = SystemData()
        self._credentials: Dict[str, str] = {}
        self._load()

    @classmethod
    def from_config(cls, config: ConfigModel) -> "LocalStore":
        return cls(config.get_data_path())

    # Persistence

    def _load(self):
        if not self.path.exists():
            self.logger.debug(f"No local data at {self.path}, starting empty")
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
            self._data = SystemData.from_dict(document)
            self._credentials = dict(document.get("credentials", {}))
        except (OSError, ValueError) as e:
            raise LocalStoreError(f"Failed to load local data from {self.path}: {e}") from e
        self.logger.debug(f"Loaded {self._data.entity_count()} entities from {self.path}")

    def _persist(self):
        document = self._data.to_dict()
        document["credentials"] = self._credentials
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=".data-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise LocalStoreError(f"Failed to write local data to {self.path}: {e}") from e

    # Generic collection helpers

    def _find_index(self, kind: EntityKind, entity_id: str) -> Optional[int]:
        for i, entity in enumerate(self._data.collection(kind)):
            if entity.id == entity_id:
                return i
        return None

    def _add(self, entity):
        kind = kind_of(entity)
        if self._find_index(kind, entity.id) is not None:
            raise DuplicateEntityError(f"{kind.value} already contains id {entity.id!r}")
        self._data.collection(kind).append(entity)
        self._persist()

    def _update(self, entity):
        kind = kind_of(entity)
        index = self._find_index(kind, entity.id)
        if index is None:
            raise EntityNotFoundError(f"{kind.value} has no entity with id {entity.id!r}")
        self._data.collection(kind)[index] = entity
        self._persist()

    # Snapshot

    def get_data(self) -> SystemData:
        """Return a copy of the full local snapshot."""
        return SystemData(**{kind.attr: list(self._data.collection(kind)) for kind in EntityKind})

    def save_data(self, data: SystemData) -> None:
        """Replace all five collections; stored credentials are kept."""
        self._data = SystemData(**{kind.attr: list(data.collection(kind)) for kind in EntityKind})
        self._persist()
        self.logger.debug(f"Saved snapshot with {data.entity_count()} entities")

    # Users

    def get_users(self) -> List[User]:
        return list(self._data.users)

    def get_user(self, email: str) -> Optional[User]:
        """Find a user by email (case-insensitive)."""
        wanted = email.strip().lower()
        for user in self._data.users:
            if user.email.lower() == wanted:
                return user
        return None

    def add_user(self, user: User) -> None:
        self._add(user)

    def update_user(self, user: User) -> None:
        self._update(user)

    def set_user_password(self, email: str, password: str) -> None:
        """Store a bcrypt hash of the user's password locally."""
        self._credentials[email.strip().lower()] = hash_password(password)
        self._persist()

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """Return the user if the password matches the stored hash."""
        user = self.get_user(email)
        if user is None:
            return None
        hashed = self._credentials.get(user.email.lower())
        if not hashed or not verify_password(password, hashed):
            return None
        return user

    # Components

    def get_components(self) -> List[Component]:
        return list(self._data.components)

    def add_component(self, component: Component) -> None:
        self._add(component)

    def update_component(self, component: Component) -> None:
        self._update(component)

    def delete_component(self, component_id: str) -> bool:
        """Delete a component; returns False if it did not exist."""
        index = self._find_index(EntityKind.COMPONENTS, component_id)
        if index is None:
            return False
        del self._data.components[index]
        self._persist()
        return True

    # Borrow requests

    def get_requests(self) -> List[BorrowRequest]:
        return list(self._data.requests)

    def get_user_requests(self, user_id: str) -> List[BorrowRequest]:
        return [r for r in self._data.requests if r.user_id == user_id]

    def add_request(self, request: BorrowRequest) -> None:
        self._add(request)

    def update_request(self, request: BorrowRequest) -> None:
        self._update(request)

    # Notifications

    def get_user_notifications(self, user_id: str) -> List[Notification]:
        """Notifications for a user, newest first."""
        notifications = [n for n in self._data.notifications if n.user_id == user_id]
        return sorted(notifications, key=lambda n: n.created_at, reverse=True)

    def add_notification(self, notification: Notification) -> None:
        self._add(notification)

    def mark_notification_as_read(self, notification_id: str) -> bool:
        """Mark a notification read; returns False if it does not exist."""
        index = self._find_index(EntityKind.NOTIFICATIONS, notification_id)
        if index is None:
            return False
        self._data.notifications[index].read = True
        self._persist()
        return True

    # Login sessions

    def get_login_sessions(self) -> List[LoginSession]:
        return list(self._data.login_sessions)

    def create_login_session(self, user: User) -> LoginSession:
        """Open a login session and bump the user's activity counters."""
        now = self.clock()
        session = LoginSession.open_for(user, at=now)
        self._data.login_sessions.append(session)

        index = self._find_index(EntityKind.USERS, user.id)
        if index is not None:
            stored = self._data.users[index]
            stored.login_count += 1
            stored.is_active = True
            stored.last_login_at = now
        self._persist()
        return session

    def end_login_session(self, user_id: str, at=None) -> List[LoginSession]:
        """Close every open session of a user.

        Args:
            user_id: Owner of the sessions
            at: Close time; defaults to the store clock

        Returns:
            The sessions that were closed
        """
        closed_at = at or self.clock()
        closed = []
        for session in self._data.login_sessions:
            if session.user_id == user_id and session.is_active:
                session.close(closed_at)
                closed.append(session)

        index = self._find_index(EntityKind.USERS, user_id)
        if index is not None:
            self._data.users[index].is_active = False

        if closed or index is not None:
            self._persist()
        return closed

    def export_login_sessions_csv(self) -> str:
        """Export all login sessions as CSV text."""
        output = StringIO()
        writer = csv.DictWriter(output, fieldnames=SESSION_CSV_FIELDS)
        writer.writeheader()
        for session in self._data.login_sessions:
            duration = ""
            if session.session_duration is not None:
                duration = round(session.session_duration / 60000)
            writer.writerow({
                "Session ID": session.id,
                "User ID": session.user_id,
                "User Name": session.user_name,
                "User Email": session.user_email,
                "Login Time": to_iso_string(session.login_time),
                "Logout Time": to_iso_string(session.logout_time) or "",
                "Duration (minutes)": duration,
                "Status": "Active" if session.is_active else "Completed",
            })
        return output.getvalue()

    # Stats

    def get_system_stats(self) -> SystemStats:
        return SystemStats.from_snapshot(self._data)
