"""
Network reachability flag with transition callbacks.

Services consult ``online`` before attempting a cloud write. ``probe()``
refreshes the flag from a cloud health check; registered listeners fire on
offline -> online and online -> offline transitions (the sync engine
subscribes to trigger a drain on reconnect).
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from studiosync.cloud.client import CloudClient

logger = logging.getLogger(__name__)

Listener = Callable[[bool], Any]


class Connectivity:
    def __init__(self, client: Optional[CloudClient], online: bool = False) -> None:
        self.client = client
        self._online = online and client is not None
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task] = set()

    @property
    def online(self) -> bool:
        return self._online

    def on_change(self, listener: Listener) -> None:
        """Register a callback fired with the new state on every transition."""
        self._listeners.append(listener)

    def set_online(self, online: bool) -> None:
        online = online and self.client is not None
        if online == self._online:
            return
        self._online = online
        logger.info("Cloud connectivity %s", "restored" if online else "lost")
        for listener in list(self._listeners):
            try:
                result = listener(online)
            except Exception:
                logger.exception("Connectivity listener failed")
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

    async def probe(self) -> bool:
        if self.client is None:
            return False
        reachable = await self.client.health_check()
        self.set_online(reachable)
        return reachable

    async def wait_idle(self) -> None:
        """Wait for listener coroutines started by a transition to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
