"""
Soft-delete / restore / purge lifecycle, walked generically over the
ownership graph.

    active --soft_delete--> deleted --restore--> active
                               |
                               +--purge (explicit, or sweep past retention)--> gone

Soft delete only stamps ``deletedAt``; every other column is left as is,
so a restore gives back the row exactly as it was. Permanent deletion is
written to the activity log before anything is removed.
"""

from typing import Any, Optional

from sqlalchemy import select

from studiosync.config import LifecycleConfig, settings
from studiosync.errors import InvalidInputError, NotFoundError
from studiosync.lifecycle.ownership import SOFT_DELETABLE, dependents_of
from studiosync.logging_context import get_op_logger
from studiosync.schemas.session_schema import SessionContext
from studiosync.schemas.sync_schema import SyncAction, SyncEntity
from studiosync.services.activity_log import ActivityLogService
from studiosync.sync.dual_write import DualWriter
from studiosync.sync.entities import spec_for
from studiosync.sync.pusher import PushResult
from studiosync.utils import now_ms

logger = get_op_logger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


class LifecycleManager:
    def __init__(
        self,
        writer: DualWriter,
        activity: ActivityLogService,
        config: LifecycleConfig = settings.lifecycle,
    ) -> None:
        self.writer = writer
        self.store = writer.store
        self.activity = activity
        self.config = config

    def _check(self, entity: SyncEntity) -> None:
        if SyncEntity(entity) not in SOFT_DELETABLE:
            raise InvalidInputError(f"{SyncEntity(entity).value} does not support soft delete")

    async def _load(self, entity: SyncEntity, entity_id: str) -> dict[str, Any]:
        row = await self.store.get(spec_for(entity).local_table, entity_id)
        if row is None:
            raise NotFoundError(f"{SyncEntity(entity).value} {entity_id} not found")
        return row

    async def remove_dependents(self, entity: SyncEntity, entity_id: str) -> int:
        """Hard-delete every dependent of ``entity_id``, locally and in the cloud."""
        removed = 0
        for dependent in dependents_of(entity):
            table = spec_for(dependent.entity).local_table
            rows = await self.store.fetch_all(
                select(table.c.id).where(table.c[dependent.foreign_key] == entity_id)
            )
            for row in rows:
                await self.remove_dependents(dependent.entity, row["id"])
                await self.writer.remove(dependent.entity, row["id"])
                removed += 1
        if removed:
            logger.info("Removed %d dependents of %s %s", removed, SyncEntity(entity).value, entity_id)
        return removed

    async def soft_delete(
        self, entity: SyncEntity, entity_id: str, actor: SessionContext
    ) -> PushResult:
        self._check(entity)
        row = await self._load(entity, entity_id)
        if row.get("deletedAt") is not None:
            raise InvalidInputError(f"{SyncEntity(entity).value} {entity_id} is already deleted")

        await self.remove_dependents(entity, entity_id)
        result = await self.writer.save(
            entity, SyncAction.UPDATE, {**row, "deletedAt": now_ms()}, base_version=row.get("updatedAt")
        )
        await self.activity.log_action(
            actor, "soft_delete", SyncEntity(entity).value, entity_id, "Moved to trash"
        )
        return result

    async def restore(self, entity: SyncEntity, entity_id: str, actor: SessionContext) -> PushResult:
        self._check(entity)
        row = await self._load(entity, entity_id)
        if row.get("deletedAt") is None:
            raise InvalidInputError(f"{SyncEntity(entity).value} {entity_id} is not deleted")

        result = await self.writer.save(
            entity, SyncAction.UPDATE, {**row, "deletedAt": None}, base_version=row.get("updatedAt")
        )
        await self.activity.log_action(
            actor, "restore", SyncEntity(entity).value, entity_id, "Restored from trash"
        )
        return result

    async def purge(
        self, entity: SyncEntity, entity_id: str, actor: SessionContext, reason: str = "Permanently deleted"
    ) -> None:
        """Irreversibly remove a row and its dependents. Audited first."""
        await self._load(entity, entity_id)
        await self.activity.log_action(
            actor, "permanent_delete", SyncEntity(entity).value, entity_id, reason
        )
        await self.remove_dependents(entity, entity_id)
        await self.writer.remove(entity, entity_id)
        logger.info("Purged %s %s", SyncEntity(entity).value, entity_id)

    async def deleted(self, entity: SyncEntity) -> list[dict[str, Any]]:
        self._check(entity)
        table = spec_for(entity).local_table
        return await self.store.fetch_all(
            select(table).where(table.c.deletedAt.is_not(None)).order_by(table.c.deletedAt.desc())
        )

    async def sweep(
        self,
        retention_days: Optional[int] = None,
        entities: Optional[tuple[SyncEntity, ...]] = None,
        actor: Optional[SessionContext] = None,
    ) -> dict[str, int]:
        """Purge soft-deleted rows older than the retention window. Returns counts per entity."""
        days = retention_days if retention_days is not None else self.config.retention_days
        actor = actor or SessionContext.system()
        cutoff = now_ms() - days * DAY_MS
        purged: dict[str, int] = {}
        for entity in entities or SOFT_DELETABLE:
            table = spec_for(entity).local_table
            rows = await self.store.fetch_all(
                select(table.c.id)
                .where(table.c.deletedAt.is_not(None))
                .where(table.c.deletedAt < cutoff)
            )
            count = 0
            for row in rows:
                try:
                    await self.purge(
                        entity, row["id"], actor, reason=f"Retention sweep: deleted over {days} days ago"
                    )
                except NotFoundError:
                    # already removed as a dependent of an earlier purge
                    continue
                count += 1
            if count:
                purged[entity.value] = count
        if purged:
            logger.info("Retention sweep purged %s", purged)
        return purged
