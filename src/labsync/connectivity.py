"""Connectivity monitor.

Tracks whether the remote store is reachable. The host environment pushes
transitions with ``set_online``; nothing here polls. Observers subscribe to
the online and offline transitions.
"""

import asyncio
import logging
from typing import Any, Callable, List, Set


logger = logging.getLogger(__name__)

Handler = Callable[[], Any]


class ConnectivityMonitor:
    """Online/offline signal with observer subscriptions."""

    def __init__(self, initially_online: bool = False):
        """Initialize the monitor.

        Args:
            initially_online: The host's current reachability indicator
        """
        self._online = initially_online
        self._online_handlers: List[Handler] = []
        self._offline_handlers: List[Handler] = []
        self._tasks: Set[asyncio.Task] = set()
        self.logger = logging.getLogger(__name__)

    @property
    def is_online(self) -> bool:
        return self._online

    def on_online(self, handler: Handler) -> Callable[[], None]:
        """Subscribe to offline->online transitions; returns an unsubscribe callable."""
        return self._subscribe(self._online_handlers, handler)

    def on_offline(self, handler: Handler) -> Callable[[], None]:
        """Subscribe to online->offline transitions; returns an unsubscribe callable."""
        return self._subscribe(self._offline_handlers, handler)

    def _subscribe(self, handlers: List[Handler], handler: Handler) -> Callable[[], None]:
        handlers.append(handler)

        def unsubscribe():
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def set_online(self, online: bool) -> None:
        """Record the host's reachability; notifies observers on a transition."""
        if online == self._online:
            return
        self._online = online
        self.logger.info(f"Connectivity changed: {'online' if online else 'offline'}")
        handlers = self._online_handlers if online else self._offline_handlers
        for handler in list(handlers):
            self._dispatch(handler)

    def _dispatch(self, handler: Handler):
        try:
            outcome = handler()
        except Exception as e:
            self.logger.error(f"Connectivity handler {handler!r} failed: {e}")
            return

        if not asyncio.iscoroutine(outcome):
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            try:
                asyncio.run(outcome)
            except Exception as e:
                self.logger.error(f"Connectivity handler {handler!r} failed: {e}")
            return

        task = loop.create_task(outcome)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error(f"Connectivity handler task failed: {error}")

    async def wait_idle(self) -> None:
        """Wait for handler tasks started by transitions to finish."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)
