"""labsync - local-first synchronization core for lab inventory data."""

__version__ = "0.1.0"

from .models import (
    BorrowRequest,
    Component,
    EntityKind,
    LoginSession,
    Notification,
    NotificationType,
    RequestStatus,
    SystemData,
    SystemStats,
    User,
    UserRole,
)
from .connectivity import ConnectivityMonitor
from .reconcile import merge_snapshots, reconcile
from .storage import LocalStore
from .sync_service import ConnectionStatus, SyncResult, SyncService, SyncStatus

__all__ = [
    "BorrowRequest",
    "Component",
    "EntityKind",
    "LoginSession",
    "Notification",
    "NotificationType",
    "RequestStatus",
    "SystemData",
    "SystemStats",
    "User",
    "UserRole",
    "ConnectivityMonitor",
    "merge_snapshots",
    "reconcile",
    "LocalStore",
    "ConnectionStatus",
    "SyncResult",
    "SyncService",
    "SyncStatus",
    "__version__",
]
