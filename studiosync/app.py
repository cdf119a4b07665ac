"""
Application wiring: builds the store, sync layer and entity services from
configuration and owns their lifetime.

    app = await StudioApp.open()
    booking = await app.bookings.create(actor, {...})
    await app.close()
"""

import logging
from typing import Optional

from studiosync.cloud.client import CloudClient
from studiosync.cloud.connectivity import Connectivity
from studiosync.config import AppConfig, settings
from studiosync.lifecycle.manager import LifecycleManager
from studiosync.services.activity_log import ActivityLogService
from studiosync.services.booking import BookingService
from studiosync.services.inventory import InventoryService
from studiosync.services.notifications import NotificationCenter
from studiosync.services.reminders import ReminderService
from studiosync.services.tasks import TaskService
from studiosync.store.bridge import BridgeClient, create_bridge
from studiosync.store.local_store import LocalStore
from studiosync.sync.conflicts import ConflictResolver
from studiosync.sync.dual_write import DualWriter
from studiosync.sync.engine import SyncEngine
from studiosync.sync.mirror import MirrorFetcher
from studiosync.sync.pusher import CloudPusher
from studiosync.sync.queue import SyncQueue

logger = logging.getLogger(__name__)


class StudioApp:
    def __init__(
        self,
        config: AppConfig = settings,
        bridge: Optional[BridgeClient] = None,
        client: Optional[CloudClient] = None,
    ) -> None:
        self.config = config
        self.store = LocalStore(bridge or create_bridge(config.store.bridge_mode, config.store.db_path))
        self.client = client if client is not None else CloudClient.from_config(config.cloud)
        self.connectivity = Connectivity(self.client)
        self.queue = SyncQueue(self.store)
        pusher = CloudPusher(self.client) if self.client is not None else None

        self.writer = DualWriter(self.store, self.queue, self.connectivity, pusher)
        self.mirror = MirrorFetcher(self.store, self.queue, self.connectivity, self.client)
        self.resolver = ConflictResolver(self.writer)
        self.engine = SyncEngine(self.queue, self.connectivity, pusher, self.resolver, config.sync)

        self.activity = ActivityLogService(self.writer, self.mirror)
        self.notifications = NotificationCenter(self.store, config.lifecycle)
        self.lifecycle = LifecycleManager(self.writer, self.activity, config.lifecycle)
        self.bookings = BookingService(
            self.mirror, self.resolver, self.lifecycle, self.activity, self.notifications, config.lifecycle
        )
        self.reminders = ReminderService(self.mirror, self.lifecycle, self.activity)
        self.tasks = TaskService(self.mirror, self.lifecycle, self.activity)
        self.inventory = InventoryService(self.mirror, self.lifecycle)

    @classmethod
    async def open(
        cls,
        config: AppConfig = settings,
        bridge: Optional[BridgeClient] = None,
        client: Optional[CloudClient] = None,
        start_sync: bool = False,
    ) -> "StudioApp":
        """Create the schema, probe the cloud and optionally start the drain scheduler."""
        app = cls(config, bridge, client)
        await app.store.init_schema()
        if app.client is not None:
            await app.connectivity.probe()
        logger.info(
            "Studio sync ready (store %s, cloud %s)",
            "available" if app.store.available else "unavailable",
            "online" if app.connectivity.online else "offline",
        )
        if start_sync:
            app.engine.start()
        return app

    async def close(self) -> None:
        await self.engine.stop()
        await self.bookings.wait_background()
        await self.connectivity.wait_idle()
        if self.client is not None:
            await self.client.aclose()
        await self.store.close()
