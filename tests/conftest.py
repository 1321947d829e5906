"""Pytest configuration and shared fixtures."""

import sys
import asyncio
import inspect
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure src directory is in Python path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from labsync.config import ConfigModel, SyncSettings
from labsync.connectivity import ConnectivityMonitor
from labsync.models import Component, User, UserRole
from labsync.remote.memory import InMemoryRemoteStore
from labsync.storage import LocalStore
from labsync.sync_service import SyncService


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    """Execute async tests without external plugins."""
    testfunction = pyfuncitem.obj
    if inspect.iscoroutinefunction(testfunction):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            sig = inspect.signature(testfunction)
            call_kwargs = {name: pyfuncitem.funcargs[name] for name in sig.parameters}
            loop.run_until_complete(testfunction(**call_kwargs))
        finally:
            asyncio.set_event_loop(None)
            loop.close()
        return True
    return None


class FixedClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def test_config(tmp_path):
    """Configuration rooted in a temporary data directory."""
    return ConfigModel(data_dir=str(tmp_path / "labsync"))


@pytest.fixture
def local_store(tmp_path, clock):
    return LocalStore(tmp_path / "data.json", clock=clock)


@pytest.fixture
def remote():
    return InMemoryRemoteStore()


@pytest.fixture
def monitor():
    return ConnectivityMonitor(initially_online=True)


@pytest.fixture
def service(local_store, remote, monitor, clock):
    # Mirrors are awaited so the remote state can be asserted right after a write
    settings = SyncSettings(mirror_in_background=False)
    return SyncService(local_store, remote, monitor, settings=settings, clock=clock)


@pytest.fixture
def student():
    return User(
        id="user-alice",
        name="Alice",
        email="alice@example.com",
        role=UserRole.STUDENT,
        roll_no="CS-101",
        mobile="5550100",
        registered_at=datetime(2024, 1, 15, tzinfo=timezone.utc),
    )


@pytest.fixture
def component():
    return Component(
        id="comp-servo",
        name="Servo Motor",
        category="Actuators",
        total_quantity=10,
        available_quantity=10,
        location="Shelf A",
        created_at=datetime(2024, 1, 10, tzinfo=timezone.utc),
    )
