"""
Staff notifications: in-memory pub/sub plus a persisted list capped at the
most recent ``NOTIFICATION_CAP`` entries. Delivery is fire-and-forget; a
failing subscriber never affects the operation that raised the event.
"""

import asyncio
import inspect
import json
from typing import Any, Callable, Optional

from sqlalchemy import delete, select, update

from studiosync.config import LifecycleConfig, settings
from studiosync.logging_context import get_op_logger
from studiosync.schemas.activity_schema import Notification
from studiosync.schemas.session_schema import UserRole
from studiosync.store.local_store import LocalStore
from studiosync.store.tables import notifications
from studiosync.utils import new_id, utc_now_iso

logger = get_op_logger(__name__)

Subscriber = Callable[[Notification], Any]

NAS_CLEANUP_ROLES = (UserRole.SELECTOR, UserRole.MANAGER, UserRole.ADMIN)


def _from_row(row: dict[str, Any]) -> Notification:
    return Notification.model_validate({
        **row,
        "read": bool(row.get("read")),
        "targetRoles": json.loads(row.get("targetRoles") or "[]"),
    })


class NotificationCenter:
    def __init__(self, store: LocalStore, config: LifecycleConfig = settings.lifecycle) -> None:
        self.store = store
        self.cap = config.notification_cap
        self._subscribers: list[Subscriber] = []
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a subscriber; returns a function that unsubscribes it."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    async def notify(
        self,
        title: str,
        message: str,
        target_roles: tuple[UserRole, ...] = (),
        booking_id: Optional[str] = None,
        kind: str = "info",
    ) -> Notification:
        notification = Notification(
            id=f"{kind}-{new_id()[:8]}",
            title=title,
            message=message,
            time=utc_now_iso(),
            type=kind,
            targetRoles=[UserRole(role).value for role in target_roles],
            bookingId=booking_id,
        )
        row = notification.model_dump()
        row["read"] = 0
        row["targetRoles"] = json.dumps(row["targetRoles"])
        async with self.store.transaction():
            await self.store.upsert(notifications, row)
            await self._trim()
        self._publish(notification)
        return notification

    async def _trim(self) -> None:
        overflow = await self.store.fetch_all(
            select(notifications.c.id)
            .order_by(notifications.c.time.desc(), notifications.c.id.desc())
            .offset(self.cap)
        )
        for row in overflow:
            await self.store.execute(delete(notifications).where(notifications.c.id == row["id"]))

    def _publish(self, notification: Notification) -> None:
        for subscriber in list(self._subscribers):
            try:
                result = subscriber(notification)
            except Exception:
                logger.exception("Notification subscriber failed")
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

    async def recent(self, role: Optional[UserRole] = None) -> list[Notification]:
        rows = await self.store.fetch_all(
            select(notifications).order_by(notifications.c.time.desc(), notifications.c.id.desc())
        )
        items = [_from_row(row) for row in rows]
        if role is not None:
            items = [n for n in items if not n.targetRoles or UserRole(role).value in n.targetRoles]
        return items

    async def mark_read(self, notification_id: str) -> None:
        await self.store.execute(
            update(notifications).where(notifications.c.id == notification_id).values(read=1)
        )

    async def notify_nas_cleanup(self, booking_id: str, client_label: str) -> Notification:
        """Ask selectors and managers to wipe a delivered booking's photos from the NAS."""
        return await self.notify(
            "NAS cleanup required",
            f'Booking "{client_label}" was delivered. Please delete its photos from the NAS.',
            target_roles=NAS_CLEANUP_ROLES,
            booking_id=booking_id,
            kind="nas_cleanup",
        )
