"""Dashboard to-do cards. Cards tied to a booking are removed with it."""

from typing import Optional

from pydantic import ValidationError

from studiosync.errors import NotFoundError
from studiosync.lifecycle.manager import LifecycleManager
from studiosync.logging_context import get_op_logger
from studiosync.schemas.reminder_schema import DashboardTask
from studiosync.schemas.session_schema import SessionContext
from studiosync.schemas.sync_schema import SyncAction, SyncEntity
from studiosync.services.activity_log import ActivityLogService
from studiosync.store.tables import dashboard_tasks
from studiosync.sync.mirror import MirrorFetcher
from studiosync.utils import new_id, utc_now_iso

logger = get_op_logger(__name__)

PRIORITIES = ("low", "normal", "high", "urgent")


class TaskService:
    def __init__(
        self, mirror: MirrorFetcher, lifecycle: LifecycleManager, activity: ActivityLogService
    ) -> None:
        self.writer = lifecycle.writer
        self.store = lifecycle.store
        self.mirror = mirror
        self.lifecycle = lifecycle
        self.activity = activity

    async def add(
        self,
        actor: SessionContext,
        title: str,
        related_booking_id: Optional[str] = None,
        time: Optional[str] = None,
        priority: str = "normal",
        kind: str = "general",
        source: str = "manual",
    ) -> DashboardTask:
        if priority not in PRIORITIES:
            priority = "normal"
        task = DashboardTask(
            id=new_id(),
            title=title.strip() or "Untitled task",
            time=time,
            createdAt=utc_now_iso(),
            type=kind,
            source=source,
            relatedBookingId=related_booking_id,
            priority=priority,
        )
        await self.writer.save(SyncEntity.TASK, SyncAction.CREATE, task.to_row())
        await self.activity.log_action(actor, "create", "task", task.id, task.title)
        return task

    async def get_tasks(self, booking_id: Optional[str] = None) -> list[DashboardTask]:
        tasks = []
        for row in await self.mirror.fetch(SyncEntity.TASK):
            try:
                tasks.append(DashboardTask.model_validate(row))
            except ValidationError as e:
                logger.warning("Skipping unreadable task %s: %s", row.get("id"), e)
        return sorted(
            (t for t in tasks if t.deletedAt is None and (booking_id is None or t.relatedBookingId == booking_id)),
            key=lambda t: t.createdAt or "",
        )

    async def toggle(self, actor: SessionContext, task_id: str) -> DashboardTask:
        row = await self.store.get(dashboard_tasks, task_id)
        if row is None:
            raise NotFoundError(f"Task {task_id} not found")
        task = DashboardTask.model_validate(row)
        task = task.model_copy(update={"completed": not task.completed})
        await self.writer.save(SyncEntity.TASK, SyncAction.UPDATE, task.to_row())
        await self.activity.log_action(
            actor, "complete" if task.completed else "reopen", "task", task_id, task.title
        )
        return task

    async def soft_delete(self, actor: SessionContext, task_id: str) -> None:
        await self.lifecycle.soft_delete(SyncEntity.TASK, task_id, actor)
