"""
Local-first dual write: local store always, cloud when possible, queue otherwise.

A direct cloud write is only attempted when online *and* no earlier entry
for the same row is still queued, so a fresh write never overtakes an older
one that is waiting to drain. When the write is going to be queued anyway,
the local change and its queue entry are committed in one transaction.
"""

from typing import Any, Awaitable, Callable, Optional

from sqlalchemy import delete

from studiosync.cloud.client import CloudError
from studiosync.cloud.connectivity import Connectivity
from studiosync.logging_context import get_op_logger
from studiosync.schemas.sync_schema import SyncAction, SyncEntity
from studiosync.store.local_store import LocalStore
from studiosync.sync.entities import spec_for
from studiosync.sync.pusher import CloudPusher, PushOutcome, PushResult
from studiosync.sync.queue import SyncQueue

logger = get_op_logger(__name__)

DeferHandler = Callable[[dict[str, Any], Optional[dict[str, Any]]], Awaitable[Any]]


class DualWriter:
    def __init__(
        self,
        store: LocalStore,
        queue: SyncQueue,
        connectivity: Connectivity,
        pusher: Optional[CloudPusher] = None,
    ) -> None:
        self.store = store
        self.queue = queue
        self.connectivity = connectivity
        self.pusher = pusher
        self._on_deferred: Optional[DeferHandler] = None

    def set_defer_handler(self, handler: DeferHandler) -> None:
        """Called with (proposed cloud row, winning cloud row) when a push is deferred."""
        self._on_deferred = handler

    async def _can_push(self, entity: SyncEntity, entity_id: str) -> bool:
        if self.pusher is None or not self.connectivity.online:
            return False
        return not await self.queue.has_pending(entity, entity_id)

    async def save(
        self,
        entity: SyncEntity,
        action: SyncAction,
        row: dict[str, Any],
        base_version: Optional[str] = None,
    ) -> PushResult:
        """Upsert ``row`` locally, then mirror it to the cloud."""
        spec = spec_for(entity)
        data = spec.mapping.to_cloud(row)
        if not await self._can_push(entity, row["id"]):
            async with self.store.transaction():
                await self.store.upsert(spec.local_table, row)
                await self.queue.enqueue(action, entity, row["id"], data, base_version)
            return PushResult(PushOutcome.QUEUED)
        await self.store.upsert(spec.local_table, row)
        return await self._push(entity, action, row["id"], data, base_version)

    async def remove(self, entity: SyncEntity, entity_id: str) -> PushResult:
        """Hard-delete a row locally and in the cloud."""
        spec = spec_for(entity)
        stmt = delete(spec.local_table).where(spec.local_table.c.id == entity_id)
        if not await self._can_push(entity, entity_id):
            async with self.store.transaction():
                await self.store.execute(stmt)
                await self.queue.enqueue(SyncAction.DELETE, entity, entity_id, {})
            return PushResult(PushOutcome.QUEUED)
        await self.store.execute(stmt)
        return await self._push(entity, SyncAction.DELETE, entity_id, {})

    async def mirror(
        self,
        entity: SyncEntity,
        action: SyncAction,
        entity_id: str,
        data: dict[str, Any],
        base_version: Optional[str] = None,
    ) -> PushResult:
        """Send an already-persisted change to the cloud, or queue it."""
        if not await self._can_push(entity, entity_id):
            await self.queue.enqueue(action, entity, entity_id, data, base_version)
            return PushResult(PushOutcome.QUEUED)
        return await self._push(entity, action, entity_id, data, base_version)

    async def _push(
        self,
        entity: SyncEntity,
        action: SyncAction,
        entity_id: str,
        data: dict[str, Any],
        base_version: Optional[str] = None,
    ) -> PushResult:
        try:
            result = await self.pusher.push(entity, action, entity_id, data, base_version)
        except CloudError as e:
            logger.warning(
                "Cloud %s of %s %s failed, queued for retry: %s",
                action.value, entity.value, entity_id, e,
            )
            await self.queue.enqueue(action, entity, entity_id, data, base_version)
            return PushResult(PushOutcome.QUEUED)
        if result.outcome == PushOutcome.DEFERRED and self._on_deferred is not None:
            await self._on_deferred(data, result.stored)
        return result
