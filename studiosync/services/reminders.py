"""Reminders attached to bookings (or free-standing)."""

from typing import Any, Optional, Union

from pydantic import ValidationError

from studiosync.errors import InvalidInputError, NotFoundError, validate_input
from studiosync.lifecycle.manager import LifecycleManager
from studiosync.logging_context import get_op_logger
from studiosync.schemas.reminder_schema import Reminder, ReminderCreate, ReminderUpdate
from studiosync.schemas.session_schema import SessionContext
from studiosync.schemas.sync_schema import SyncAction, SyncEntity
from studiosync.services.activity_log import ActivityLogService
from studiosync.store.tables import reminders
from studiosync.sync.mirror import MirrorFetcher
from studiosync.utils import new_id

logger = get_op_logger(__name__)


class ReminderService:
    def __init__(
        self, mirror: MirrorFetcher, lifecycle: LifecycleManager, activity: ActivityLogService
    ) -> None:
        self.writer = lifecycle.writer
        self.store = lifecycle.store
        self.mirror = mirror
        self.lifecycle = lifecycle
        self.activity = activity

    async def get_reminders(
        self, booking_id: Optional[str] = None, include_completed: bool = True
    ) -> list[Reminder]:
        """Live reminders, soonest first."""
        items = []
        for row in await self.mirror.fetch(SyncEntity.REMINDER):
            try:
                items.append(Reminder.model_validate(row))
            except ValidationError as e:
                logger.warning("Skipping unreadable reminder %s: %s", row.get("id"), e)
        items = [
            r for r in items
            if r.deletedAt is None
            and (booking_id is None or r.bookingId == booking_id)
            and (include_completed or not r.completed)
        ]
        return sorted(items, key=lambda r: r.dueDate)

    async def get_reminder(self, reminder_id: str) -> Reminder:
        row = await self.store.get(reminders, reminder_id)
        if row is None:
            raise NotFoundError(f"Reminder {reminder_id} not found")
        return Reminder.model_validate(row)

    async def add(self, actor: SessionContext, data: Union[ReminderCreate, dict[str, Any]]) -> Reminder:
        payload = validate_input(ReminderCreate, data)
        reminder = Reminder.model_validate({**payload.model_dump(), "id": payload.id or new_id()})
        await self.writer.save(SyncEntity.REMINDER, SyncAction.CREATE, reminder.to_row())
        await self.activity.log_action(actor, "create", "reminder", reminder.id, reminder.title)
        return reminder

    async def update(
        self, actor: SessionContext, reminder_id: str, changes: Union[ReminderUpdate, dict[str, Any]]
    ) -> Reminder:
        update = validate_input(ReminderUpdate, changes)
        current = await self.get_reminder(reminder_id)
        if current.deletedAt is not None:
            raise InvalidInputError(f"Reminder {reminder_id} is in the trash")
        reminder = current.model_copy(update=update.model_dump(exclude_unset=True))
        await self.writer.save(SyncEntity.REMINDER, SyncAction.UPDATE, reminder.to_row())
        await self.activity.log_action(actor, "update", "reminder", reminder_id, reminder.title)
        return reminder

    async def toggle(self, actor: SessionContext, reminder_id: str) -> Reminder:
        current = await self.get_reminder(reminder_id)
        return await self.update(actor, reminder_id, {"completed": not current.completed})

    async def soft_delete(self, actor: SessionContext, reminder_id: str) -> None:
        await self.lifecycle.soft_delete(SyncEntity.REMINDER, reminder_id, actor)

    async def restore(self, actor: SessionContext, reminder_id: str) -> Reminder:
        await self.lifecycle.restore(SyncEntity.REMINDER, reminder_id, actor)
        return await self.get_reminder(reminder_id)
