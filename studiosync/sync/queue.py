"""
Durable outbound sync queue stored in the local ``sync_queue`` table.

Each entry gets a monotonically increasing ``seq`` at enqueue time; drains
read entries in ``seq`` order, which keeps writes to the same row in the
order they were made. Entry states::

    pending --(push ok / row already gone)--> removed
    pending --(transient failure)----------> pending, retryCount += 1
    pending --(permanent failure or cap)---> failed (dead letter)
    failed  --(revive_failed)--------------> pending, retryCount = 0
"""

import json
from typing import Any, Iterable, Optional

from sqlalchemy import delete, func, select, update

from studiosync.logging_context import get_op_logger
from studiosync.schemas.sync_schema import QueueStatus, SyncAction, SyncEntity, SyncQueueEntry
from studiosync.store.local_store import LocalStore
from studiosync.store.tables import sync_queue
from studiosync.utils import new_id, utc_now_iso

logger = get_op_logger(__name__)


def _entry_from_row(row: dict[str, Any]) -> SyncQueueEntry:
    return SyncQueueEntry(
        id=row["id"],
        seq=row["seq"],
        action=SyncAction(row["action"]),
        entity=SyncEntity(row["entity"]),
        entity_id=row["entityId"],
        data=json.loads(row["data"] or "{}"),
        status=QueueStatus(row["status"]),
        created_at=row["createdAt"],
        retry_count=row["retryCount"] or 0,
        last_error=row.get("lastError"),
        base_version=row.get("baseVersion"),
    )


class SyncQueue:
    def __init__(self, store: LocalStore) -> None:
        self.store = store

    async def enqueue(
        self,
        action: SyncAction,
        entity: SyncEntity,
        entity_id: str,
        data: dict[str, Any],
        base_version: Optional[str] = None,
    ) -> SyncQueueEntry:
        """Persist a pending mutation. Returns once the row is committed."""
        async with self.store.transaction():
            row = await self.store.fetch_one(
                select(func.coalesce(func.max(sync_queue.c.seq), 0).label("last_seq"))
            )
            seq = (row["last_seq"] if row else 0) + 1
            values = {
                "id": new_id(),
                "seq": seq,
                "action": SyncAction(action).value,
                "entity": SyncEntity(entity).value,
                "entityId": entity_id,
                "data": json.dumps(data, ensure_ascii=False, default=str),
                "status": QueueStatus.PENDING.value,
                "createdAt": utc_now_iso(),
                "retryCount": 0,
                "baseVersion": base_version,
            }
            await self.store.execute(sync_queue.insert().values(**values))
        logger.info("Queued %s %s %s (seq=%d)", values["action"], values["entity"], entity_id, seq)
        return _entry_from_row(values)

    async def _entries(self, status: QueueStatus) -> list[SyncQueueEntry]:
        rows = await self.store.fetch_all(
            select(sync_queue).where(sync_queue.c.status == status.value).order_by(sync_queue.c.seq)
        )
        return [_entry_from_row(row) for row in rows]

    async def pending(self) -> list[SyncQueueEntry]:
        """Pending entries in enqueue order."""
        return await self._entries(QueueStatus.PENDING)

    async def failed(self) -> list[SyncQueueEntry]:
        return await self._entries(QueueStatus.FAILED)

    async def has_pending(self, entity: SyncEntity, entity_id: str) -> bool:
        row = await self.store.fetch_one(
            select(sync_queue.c.id)
            .where(sync_queue.c.entity == SyncEntity(entity).value)
            .where(sync_queue.c.entityId == entity_id)
            .where(sync_queue.c.status == QueueStatus.PENDING.value)
            .limit(1)
        )
        return row is not None

    async def pending_ids(self, entity: SyncEntity) -> set[str]:
        """Ids of rows with unsynced local changes (pending or dead-lettered)."""
        rows = await self.store.fetch_all(
            select(sync_queue.c.entityId).where(sync_queue.c.entity == SyncEntity(entity).value)
        )
        return {row["entityId"] for row in rows}

    async def dequeue(self, entry_id: str) -> None:
        await self.store.execute(delete(sync_queue).where(sync_queue.c.id == entry_id))

    async def record_failure(self, entry_id: str, error: str) -> int:
        """Bump the retry count after a failed attempt; returns the new count."""
        async with self.store.transaction():
            await self.store.execute(
                update(sync_queue)
                .where(sync_queue.c.id == entry_id)
                .values(retryCount=sync_queue.c.retryCount + 1, lastError=error[:500])
            )
            row = await self.store.fetch_one(
                select(sync_queue.c.retryCount).where(sync_queue.c.id == entry_id)
            )
        return row["retryCount"] if row else 0

    async def mark_failed(self, entry_id: str, error: str) -> None:
        """Move an entry to the dead letter state; drains skip it until revived."""
        await self.store.execute(
            update(sync_queue)
            .where(sync_queue.c.id == entry_id)
            .values(status=QueueStatus.FAILED.value, lastError=error[:500])
        )
        logger.warning("Sync entry %s dead-lettered: %s", entry_id, error)

    async def revive_failed(self, entities: Optional[Iterable[SyncEntity]] = None) -> int:
        """Return dead-lettered entries to pending. Limited to ``entities`` if given."""
        wanted = {SyncEntity(e).value for e in entities} if entities is not None else None
        revived = 0
        async with self.store.transaction():
            for entry in await self.failed():
                if wanted is not None and entry.entity.value not in wanted:
                    continue
                await self.store.execute(
                    update(sync_queue)
                    .where(sync_queue.c.id == entry.id)
                    .values(status=QueueStatus.PENDING.value, retryCount=0, lastError=None)
                )
                revived += 1
        if revived:
            logger.info("Revived %d dead-lettered sync entries", revived)
        return revived

    async def clear(self) -> None:
        await self.store.execute(delete(sync_queue))
        logger.warning("Sync queue cleared")

    async def stats(self) -> dict[str, Any]:
        rows = await self.store.fetch_all(
            select(sync_queue.c.status, sync_queue.c.entity, func.count().label("n"))
            .group_by(sync_queue.c.status, sync_queue.c.entity)
        )
        result: dict[str, Any] = {"pending": 0, "failed": 0, "by_entity": {}}
        for row in rows:
            result[row["status"]] = result.get(row["status"], 0) + row["n"]
            by_status = result["by_entity"].setdefault(row["entity"], {})
            by_status[row["status"]] = row["n"]
        return result
