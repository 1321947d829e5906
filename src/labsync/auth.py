"""Authentication and login-session management.

Ties user sign-in to the sync service: successful logins open a login
session, logout closes it. Remote sign-in is tried first; the local store
is the fallback so the application keeps working offline.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

from .config import ConfigModel
from .models import Notification, NotificationType, User, UserRole, new_id
from .remote.base import AuthUser, RemoteStore, call_remote
from .storage import LocalStoreError
from .sync_service import SyncService


logger = logging.getLogger(__name__)

WELCOME_TITLE = "Welcome to Isaac Asimov Lab!"
WELCOME_MESSAGE = (
    "Your account has been created successfully. "
    "You can now request components for your robotics projects."
)


@dataclass
class RegistrationData:
    """Details collected when a student signs up."""

    name: str
    email: str
    roll_number: str
    mobile: str
    password: str


class AuthManager:
    """Tracks the signed-in user and drives their login sessions."""

    def __init__(self, service: SyncService, remote: RemoteStore, config: ConfigModel):
        """Initialize the manager and listen for remote auth state changes.

        Args:
            service: Sync service used for every read and write
            remote: Remote store providing the auth primitives
            config: Supplies the persisted-user path and local-auth accounts
        """
        self.service = service
        self.remote = remote
        self.config = config
        self.current_user: Optional[User] = None
        self.logger = logging.getLogger(__name__)
        self._local_auth_emails = {email.lower() for email in config.local_auth_emails}
        self._unsubscribe = remote.on_auth_state_changed(self._handle_auth_state)

    def close(self) -> None:
        self._unsubscribe()

    # Persisted user

    def _save_current_user(self, user: Optional[User]):
        path = self.config.get_current_user_path()
        self.current_user = user
        if user is None:
            if path.exists():
                path.unlink()
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(user.to_dict(), f, indent=2)

    async def restore(self) -> Optional[User]:
        """Reload the persisted signed-in user and mark them active."""
        path = self.config.get_current_user_path()
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                user = User.from_dict(json.load(f))
        except (OSError, ValueError, TypeError) as e:
            self.logger.error(f"Error loading saved user: {e}")
            path.unlink()
            return None

        self.current_user = user
        system_user = self.service.get_user(user.email)
        if system_user is not None:
            system_user.is_active = True
            await self.service.update_user(system_user)
        return user

    async def _handle_auth_state(self, auth_user: Optional[AuthUser]):
        if auth_user is None or self.current_user is not None:
            return
        result = await call_remote(self.remote.get_user_by_email(auth_user.email))
        if not result.ok:
            self.logger.error(f"Error getting user data from remote: {result.error}")
            return
        if result.value is not None and self.current_user is None:
            self._save_current_user(result.value)

    async def _resolve_user(self, email: str) -> Optional[User]:
        result = await call_remote(self.remote.get_user_by_email(email),
                                   timeout=self.service.settings.remote_timeout_seconds)
        if result.ok and result.value is not None:
            return result.value
        return self.service.get_user(email)

    # Flows

    async def login(self, email: str, password: str) -> bool:
        """Sign a user in and open a login session.

        Returns:
            True if either the remote or the local store accepted the credentials
        """
        try:
            user = None
            if email.lower() not in self._local_auth_emails and self.service.is_online:
                signed_in = await call_remote(self.remote.sign_in(email, password),
                                              timeout=self.service.settings.remote_timeout_seconds)
                if signed_in.ok:
                    user = await self._resolve_user(email)
                else:
                    self.logger.info(f"Remote auth failed, trying local auth: {signed_in.error}")

            if user is None:
                user = self.service.authenticate_user(email, password)
            if user is None:
                return False

            if self.service.get_user(user.email) is None:
                await self.service.add_user(user)
            await self.service.create_login_session(user)
            self._save_current_user(self.service.get_user(user.email) or user)
            return True
        except (LocalStoreError, OSError) as e:
            self.logger.error(f"Login error: {e}")
            return False

    async def register(self, data: RegistrationData) -> bool:
        """Create a student account, open its first session and welcome it.

        Returns:
            False if the email is already registered or the local write failed
        """
        if self.service.get_user(data.email) is not None:
            return False

        remote_user = None
        if self.service.is_online:
            signed_up = await call_remote(self.remote.sign_up(data.email, data.password),
                                          timeout=self.service.settings.remote_timeout_seconds)
            if signed_up.ok:
                remote_user = signed_up.value
            else:
                self.logger.info(
                    f"Remote registration failed, continuing with local registration: {signed_up.error}"
                )

        now = self.service.clock()
        user = User(
            id=remote_user.uid if remote_user else new_id("user"),
            name=data.name,
            email=data.email,
            role=UserRole.STUDENT,
            roll_no=data.roll_number,
            mobile=data.mobile,
            registered_at=now,
            is_active=True,
            last_login_at=now,
        )

        try:
            await self.service.add_user(user)
            await self.service.create_login_session(user)
            # Remote accounts authenticate remotely; only local ones keep a hash here
            if remote_user is None:
                self.service.set_user_password(data.email, data.password)
            self._save_current_user(self.service.get_user(data.email) or user)
            await self.service.add_notification(Notification(
                id=new_id("notif"),
                user_id=user.id,
                title=WELCOME_TITLE,
                message=WELCOME_MESSAGE,
                type=NotificationType.SUCCESS,
                created_at=now,
            ))
        except (LocalStoreError, OSError) as e:
            self.logger.error(f"Registration error: {e}")
            return False
        return True

    async def logout(self) -> None:
        """Close the current user's sessions and sign out everywhere."""
        if self.current_user is not None:
            await self.service.end_login_session(self.current_user.id)
            if self.service.is_online and self.remote.current_user is not None:
                signed_out = await call_remote(self.remote.sign_out(),
                                               timeout=self.service.settings.remote_timeout_seconds)
                if not signed_out.ok:
                    self.logger.info(f"Remote sign-out failed: {signed_out.error}")
        self._save_current_user(None)
