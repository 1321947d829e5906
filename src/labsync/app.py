"""Composition root: builds the service graph from configuration."""

import logging
from dataclasses import dataclass
from typing import Optional

from .auth import AuthManager
from .config import ConfigModel
from .connectivity import ConnectivityMonitor
from .remote import HttpRemoteStore, RemoteStore
from .storage import LocalStore
from .sync_service import SyncService


logger = logging.getLogger(__name__)


class RemoteNotConfiguredError(Exception):
    """No remote_url is set in the configuration."""
    pass


@dataclass
class LabSyncApp:
    """The wired-up application objects."""

    config: ConfigModel
    local: LocalStore
    remote: RemoteStore
    monitor: ConnectivityMonitor
    service: SyncService
    auth: AuthManager

    async def close(self) -> None:
        self.auth.close()
        await self.service.close()
        await self.remote.close()


async def build_app(config: ConfigModel, remote: Optional[RemoteStore] = None,
                    local: Optional[LocalStore] = None) -> LabSyncApp:
    """Create every collaborator once and wire them together.

    The initial online state comes from probing the remote store. No sync
    pass is started here; call ``app.service.start()`` for that.

    Args:
        config: Loaded configuration
        remote: Remote store to use instead of the configured HTTP one
        local: Local store to use instead of the configured file

    Raises:
        RemoteNotConfiguredError: If no remote is given and none is configured
    """
    if remote is None:
        if not config.remote_url:
            raise RemoteNotConfiguredError("Set remote_url in the labsync configuration")
        remote = HttpRemoteStore(config.remote_url, api_key=config.api_key)
    if local is None:
        local = LocalStore.from_config(config)

    reachable = await remote.test_connection()
    logger.info(f"Remote store {'reachable' if reachable else 'unreachable'} at startup")
    monitor = ConnectivityMonitor(initially_online=reachable)
    service = SyncService(local, remote, monitor, settings=config.sync_settings())
    auth = AuthManager(service, remote, config)
    return LabSyncApp(config=config, local=local, remote=remote, monitor=monitor,
                      service=service, auth=auth)
