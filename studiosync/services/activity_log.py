"""
Append-only audit trail of staff actions.

Entries are never updated or deleted; they are written through the normal
dual-write path so the trail reaches the cloud even after offline work.
"""

from typing import Optional

from sqlalchemy import select

from studiosync.logging_context import get_op_logger
from studiosync.schemas.activity_schema import ActivityLog
from studiosync.schemas.session_schema import SessionContext
from studiosync.schemas.sync_schema import SyncAction, SyncEntity
from studiosync.store.tables import activity_logs
from studiosync.sync.dual_write import DualWriter
from studiosync.sync.mirror import MirrorFetcher
from studiosync.utils import new_id, utc_now_iso

logger = get_op_logger(__name__)

DEFAULT_RECENT_LIMIT = 50


class ActivityLogService:
    def __init__(self, writer: DualWriter, mirror: MirrorFetcher) -> None:
        self.writer = writer
        self.store = writer.store
        self.mirror = mirror

    async def log_action(
        self,
        actor: SessionContext,
        action: str,
        entity_type: str,
        entity_id: Optional[str] = None,
        details: Optional[str] = None,
    ) -> ActivityLog:
        entry = ActivityLog(
            id=new_id(),
            userId=actor.user_id,
            userName=actor.full_name,
            action=action,
            entityType=entity_type,
            entityId=entity_id,
            details=details,
            createdAt=utc_now_iso(),
        )
        await self.writer.save(SyncEntity.ACTIVITY_LOG, SyncAction.CREATE, entry.model_dump())
        logger.info("%s: %s %s %s", actor.full_name, action, entity_type, entity_id or "")
        return entry

    async def get_recent_logs(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[ActivityLog]:
        """Newest first. Merges the latest cloud entries without pruning local ones."""
        rows = await self.mirror.fetch(
            SyncEntity.ACTIVITY_LOG, order="created_at.desc", limit=limit, prune=False
        )
        rows.sort(key=lambda row: row.get("createdAt") or "", reverse=True)
        return [ActivityLog.model_validate(row) for row in rows[:limit]]

    async def get_logs_for_entity(self, entity_type: str, entity_id: str) -> list[ActivityLog]:
        rows = await self.store.fetch_all(
            select(activity_logs)
            .where(activity_logs.c.entityType == entity_type)
            .where(activity_logs.c.entityId == entity_id)
            .order_by(activity_logs.c.createdAt)
        )
        return [ActivityLog.model_validate(row) for row in rows]
