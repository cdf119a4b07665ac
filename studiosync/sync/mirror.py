"""
Read path for synchronized entities.

Local rows are always read first so a list works fully offline. When
online, the cloud result is reconciled into the local store and returned
together with local rows the cloud has not seen yet. Any cloud failure
falls back to the local rows.
"""

from typing import Any, Optional

from sqlalchemy import delete, select

from studiosync.cloud.client import CloudClient, CloudError
from studiosync.cloud.connectivity import Connectivity
from studiosync.errors import LocalStoreError
from studiosync.logging_context import get_op_logger
from studiosync.schemas.sync_schema import SyncEntity
from studiosync.store.local_store import LocalStore
from studiosync.sync.entities import spec_for
from studiosync.sync.queue import SyncQueue

logger = get_op_logger(__name__)


class MirrorFetcher:
    def __init__(
        self,
        store: LocalStore,
        queue: SyncQueue,
        connectivity: Connectivity,
        client: Optional[CloudClient] = None,
    ) -> None:
        self.store = store
        self.queue = queue
        self.connectivity = connectivity
        self.client = client

    async def fetch(
        self,
        entity: SyncEntity,
        order: Optional[str] = None,
        limit: Optional[int] = None,
        prune: bool = True,
    ) -> list[dict[str, Any]]:
        """
        Return local-form rows for ``entity``.

        ``prune`` deletes local rows missing from the cloud result. Turn it
        off for partial reads (``limit``) where absence proves nothing.
        """
        spec = spec_for(entity)
        try:
            local_rows = await self.store.fetch_all(select(spec.local_table))
        except LocalStoreError as e:
            logger.warning("Local read of %s failed, continuing without local rows: %s", entity.value, e)
            local_rows = []

        if self.client is None or not self.connectivity.online:
            return local_rows

        try:
            cloud_rows = await self.client.select(spec.cloud_table, order=order, limit=limit)
        except CloudError as e:
            logger.warning("Cloud fetch of %s failed, serving local data: %s", entity.value, e)
            return local_rows

        try:
            unsynced = await self.queue.pending_ids(entity)
        except LocalStoreError:
            unsynced = set()

        remote = [spec.mapping.to_local(row) for row in cloud_rows]
        remote_ids = {row["id"] for row in remote}
        local_by_id = {row["id"]: row for row in local_rows}
        stale = [
            row_id for row_id in local_by_id
            if row_id not in remote_ids and row_id not in unsynced
        ]

        try:
            async with self.store.transaction():
                if prune:
                    for row_id in stale:
                        await self.store.execute(
                            delete(spec.local_table).where(spec.local_table.c.id == row_id)
                        )
                for row in remote:
                    if row["id"] not in unsynced:
                        await self.store.upsert(spec.local_table, row)
        except LocalStoreError as e:
            logger.warning("Reconciling %s into the local store failed: %s", entity.value, e)

        if prune and stale:
            logger.info("Removed %d local %s rows no longer in the cloud", len(stale), entity.value)

        # rows with unsynced local edits keep their local version; unsynced
        # rows missing locally have a delete on its way out
        merged = []
        for row in remote:
            if row["id"] not in unsynced:
                merged.append(row)
            elif row["id"] in local_by_id:
                merged.append(local_by_id[row["id"]])
        merged.extend(
            row for row_id, row in local_by_id.items()
            if row_id not in remote_ids and (row_id in unsynced or not prune)
        )
        return merged
