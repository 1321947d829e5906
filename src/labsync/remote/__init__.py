"""Remote store adapters."""

from .base import (
    AuthenticationError,
    AuthUser,
    MigrationReport,
    NetworkError,
    RemoteNotFoundError,
    RemoteResult,
    RemoteStore,
    RemoteStoreError,
    call_remote,
)
from .http import HttpRemoteStore
from .memory import InMemoryRemoteStore

__all__ = [
    "AuthenticationError",
    "AuthUser",
    "MigrationReport",
    "NetworkError",
    "RemoteNotFoundError",
    "RemoteResult",
    "RemoteStore",
    "RemoteStoreError",
    "call_remote",
    "HttpRemoteStore",
    "InMemoryRemoteStore",
]
