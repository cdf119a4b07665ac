"""
Applies one mutation to the cloud store.

Shared by the direct (online) write path and the queue drain so both treat
missing rows, duplicate creates and rank conflicts the same way.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from studiosync.cloud.client import CloudClient, CloudDuplicateError, eq
from studiosync.logging_context import get_op_logger
from studiosync.schemas.sync_schema import SyncAction, SyncEntity
from studiosync.sync.conflicts import EditStamp, Resolution, ResolutionPolicy, check_edit
from studiosync.sync.entities import spec_for

logger = get_op_logger(__name__)


class PushOutcome(str, Enum):
    APPLIED = "applied"
    DISCARDED = "discarded"  # target row no longer exists; nothing to do
    DEFERRED = "deferred"    # rank conflict; proposal must be recorded instead
    QUEUED = "queued"        # not pushed now; waiting in the sync queue


@dataclass
class PushResult:
    outcome: PushOutcome
    stored: Optional[dict[str, Any]] = None  # cloud row that won a DEFERRED push


class CloudPusher:
    def __init__(
        self, client: CloudClient, policy: ResolutionPolicy = ResolutionPolicy.RANK
    ) -> None:
        self.client = client
        self.policy = policy

    async def push(
        self,
        entity: SyncEntity,
        action: SyncAction,
        entity_id: str,
        data: dict[str, Any],
        base_version: Optional[str] = None,
    ) -> PushResult:
        """Apply one mutation. Raises ``CloudError`` subclasses on failure."""
        spec = spec_for(entity)
        table = spec.cloud_table

        if action == SyncAction.CREATE:
            try:
                await self.client.insert(table, data)
                return PushResult(PushOutcome.APPLIED)
            except CloudDuplicateError:
                # an earlier attempt landed before its reply was lost
                logger.info("%s %s already exists in the cloud, applying as update", entity.value, entity_id)
                return await self.push(entity, SyncAction.UPDATE, entity_id, data, base_version)

        if action == SyncAction.DELETE:
            removed = await self.client.delete(table, entity_id)
            if not removed:
                logger.info("%s %s already absent in the cloud", entity.value, entity_id)
                return PushResult(PushOutcome.DISCARDED)
            return PushResult(PushOutcome.APPLIED)

        values = {key: value for key, value in data.items() if key != "id"}
        if entity == SyncEntity.BOOKING:
            rows = await self.client.select(table, {"id": eq(entity_id)})
            if not rows:
                logger.info("Booking %s no longer exists in the cloud, dropping update", entity_id)
                return PushResult(PushOutcome.DISCARDED)
            stored = rows[0]
            resolution = check_edit(
                EditStamp.from_cloud(stored), EditStamp.from_cloud(data), base_version, self.policy
            )
            if resolution == Resolution.DEFER:
                return PushResult(PushOutcome.DEFERRED, stored=stored)

        updated = await self.client.update(table, entity_id, values)
        if not updated:
            logger.info("%s %s no longer exists in the cloud, dropping update", entity.value, entity_id)
            return PushResult(PushOutcome.DISCARDED)
        return PushResult(PushOutcome.APPLIED)
