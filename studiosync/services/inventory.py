"""
Equipment inventory: catalog and custom items, assignment, maintenance and
battery / memory-card pools.

Every accepted action appends an ``InventoryLog`` entry. Pool actions at a
boundary (charging a full pool, draining an empty one) leave the item
untouched and log nothing.
"""

from typing import Any, Callable, Optional, Union

from pydantic import ValidationError
from sqlalchemy import select

from studiosync.errors import InvalidInputError, NotFoundError, validate_input
from studiosync.lifecycle.manager import LifecycleManager
from studiosync.logging_context import get_op_logger
from studiosync.schemas.inventory_schema import (
    CATALOG,
    BatteryPool,
    CustomItemCreate,
    InventoryAction,
    InventoryItem,
    InventoryLog,
    InventoryStatus,
    MemoryPool,
)
from studiosync.schemas.session_schema import SessionContext
from studiosync.schemas.sync_schema import SyncAction, SyncEntity
from studiosync.store.locks import KeyedLock
from studiosync.store.tables import inventory, inventory_logs
from studiosync.sync.mirror import MirrorFetcher
from studiosync.utils import new_id, utc_now_iso

logger = get_op_logger(__name__)

# returns (changes, log details) or None when the action is a no-op
Change = Optional[tuple[dict[str, Any], str]]


def _pool_or_none(total: int, pool: type) -> Any:
    if total <= 0:
        return None
    if pool is BatteryPool:
        return BatteryPool(total=total, charged=total)
    return MemoryPool(total=total, free=total)


class InventoryService:
    def __init__(self, mirror: MirrorFetcher, lifecycle: LifecycleManager) -> None:
        self.writer = lifecycle.writer
        self.store = lifecycle.store
        self.mirror = mirror
        self.lifecycle = lifecycle
        self._locks = KeyedLock()

    # -- reads ----------------------------------------------------------

    async def get_items(self, include_deleted: bool = False) -> list[InventoryItem]:
        items = []
        for row in await self.mirror.fetch(SyncEntity.INVENTORY):
            try:
                item = InventoryItem.from_row(row)
            except ValidationError as e:
                logger.warning("Skipping unreadable inventory item %s: %s", row.get("id"), e)
                continue
            if include_deleted or item.deletedAt is None:
                items.append(item)
        return sorted(items, key=lambda i: (i.type.value, i.name))

    async def get_item(self, item_id: str) -> InventoryItem:
        row = await self.store.get(inventory, item_id)
        if row is None:
            raise NotFoundError(f"Inventory item {item_id} not found")
        return InventoryItem.from_row(row)

    async def get_logs(self, item_id: Optional[str] = None, limit: Optional[int] = None) -> list[InventoryLog]:
        """Newest first."""
        stmt = select(inventory_logs).order_by(inventory_logs.c.createdAt.desc())
        if item_id is not None:
            stmt = stmt.where(inventory_logs.c.itemId == item_id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return [InventoryLog.model_validate(row) for row in await self.store.fetch_all(stmt)]

    # -- creation -------------------------------------------------------

    async def add_from_catalog(self, actor: SessionContext, name: str) -> InventoryItem:
        template = CATALOG.get(name)
        if template is None:
            raise InvalidInputError(f"{name!r} is not in the equipment catalog")
        return await self._add(actor, CustomItemCreate(
            name=template.name,
            type=template.type,
            icon=template.icon,
            batteryTotal=template.batteryTotal,
            memoryTotal=template.memoryTotal,
        ))

    async def add_custom(
        self, actor: SessionContext, data: Union[CustomItemCreate, dict[str, Any]]
    ) -> InventoryItem:
        return await self._add(actor, validate_input(CustomItemCreate, data))

    async def _add(self, actor: SessionContext, payload: CustomItemCreate) -> InventoryItem:
        now = utc_now_iso()
        item = InventoryItem(
            id=new_id(),
            name=payload.name.strip(),
            type=payload.type,
            icon=payload.icon,
            batteryPool=_pool_or_none(payload.batteryTotal, BatteryPool),
            memoryPool=_pool_or_none(payload.memoryTotal, MemoryPool),
            notes=payload.notes,
            createdAt=now,
            updatedAt=now,
        )
        await self.writer.save(SyncEntity.INVENTORY, SyncAction.CREATE, item.to_row())
        await self._log(actor, item.id, InventoryAction.CREATED, f"Added {item.name}")
        return item

    # -- actions --------------------------------------------------------

    async def assign(self, actor: SessionContext, item_id: str, assignee: str) -> InventoryItem:
        assignee = (assignee or "").strip()
        if not assignee:
            raise InvalidInputError("An assignee is required")

        def change(item: InventoryItem) -> Change:
            if item.status == InventoryStatus.MAINTENANCE:
                raise InvalidInputError(f"{item.name} is in maintenance")
            if item.assignedTo == assignee:
                return None
            return {"status": InventoryStatus.DEPLOYED, "assignedTo": assignee}, f"Assigned to {assignee}"

        return await self._apply(actor, item_id, InventoryAction.ASSIGNED, change)

    async def return_item(self, actor: SessionContext, item_id: str) -> InventoryItem:
        def change(item: InventoryItem) -> Change:
            if item.status != InventoryStatus.DEPLOYED:
                return None
            return {"status": InventoryStatus.STORAGE, "assignedTo": None}, f"Returned by {item.assignedTo}"

        return await self._apply(actor, item_id, InventoryAction.RETURNED, change)

    async def send_to_maintenance(self, actor: SessionContext, item_id: str, reason: str = "") -> InventoryItem:
        def change(item: InventoryItem) -> Change:
            if item.status == InventoryStatus.MAINTENANCE:
                return None
            return {"status": InventoryStatus.MAINTENANCE, "assignedTo": None}, reason or "Sent to maintenance"

        return await self._apply(actor, item_id, InventoryAction.MAINTENANCE, change)

    async def finish_maintenance(self, actor: SessionContext, item_id: str) -> InventoryItem:
        def change(item: InventoryItem) -> Change:
            if item.status != InventoryStatus.MAINTENANCE:
                return None
            return {"status": InventoryStatus.STORAGE}, "Back from maintenance"

        return await self._apply(actor, item_id, InventoryAction.MAINTENANCE_DONE, change)

    async def charge_battery(self, actor: SessionContext, item_id: str) -> InventoryItem:
        return await self._step_battery(actor, item_id, +1, InventoryAction.BATTERY_CHARGE)

    async def drain_battery(self, actor: SessionContext, item_id: str) -> InventoryItem:
        return await self._step_battery(actor, item_id, -1, InventoryAction.BATTERY_DRAIN)

    async def format_card(self, actor: SessionContext, item_id: str) -> InventoryItem:
        return await self._step_memory(actor, item_id, +1, InventoryAction.CARD_FORMAT)

    async def fill_card(self, actor: SessionContext, item_id: str) -> InventoryItem:
        return await self._step_memory(actor, item_id, -1, InventoryAction.CARD_FULL)

    async def _step_battery(
        self, actor: SessionContext, item_id: str, step: int, action: InventoryAction
    ) -> InventoryItem:
        def change(item: InventoryItem) -> Change:
            pool = item.batteryPool
            if pool is None:
                raise InvalidInputError(f"{item.name} has no batteries")
            charged = pool.charged + step
            if not 0 <= charged <= pool.total:
                return None
            return (
                {"batteryPool": BatteryPool(total=pool.total, charged=charged)},
                f"Batteries {charged}/{pool.total} charged",
            )

        return await self._apply(actor, item_id, action, change)

    async def _step_memory(
        self, actor: SessionContext, item_id: str, step: int, action: InventoryAction
    ) -> InventoryItem:
        def change(item: InventoryItem) -> Change:
            pool = item.memoryPool
            if pool is None:
                raise InvalidInputError(f"{item.name} has no memory cards")
            free = pool.free + step
            if not 0 <= free <= pool.total:
                return None
            return (
                {"memoryPool": MemoryPool(total=pool.total, free=free)},
                f"Cards {free}/{pool.total} free",
            )

        return await self._apply(actor, item_id, action, change)

    async def update_notes(self, actor: SessionContext, item_id: str, notes: str) -> InventoryItem:
        def change(item: InventoryItem) -> Change:
            if item.notes == notes:
                return None
            return {"notes": notes}, "Notes updated"

        return await self._apply(actor, item_id, InventoryAction.NOTES, change)

    async def _apply(
        self,
        actor: SessionContext,
        item_id: str,
        action: InventoryAction,
        change: Callable[[InventoryItem], Change],
    ) -> InventoryItem:
        async with self._locks.hold(item_id):
            item = await self.get_item(item_id)
            if item.deletedAt is not None:
                raise InvalidInputError(f"{item.name} is in the trash")
            result = change(item)
            if result is None:
                logger.debug("%s on %s is a no-op", action.value, item_id)
                return item
            changes, details = result
            try:
                updated = InventoryItem.model_validate({
                    **item.model_dump(), **changes, "updatedAt": utc_now_iso(),
                })
            except ValidationError as e:
                raise InvalidInputError(f"Invalid {action.value} on {item.name}: {e}", errors=e.errors()) from None
            await self.writer.save(
                SyncEntity.INVENTORY, SyncAction.UPDATE, updated.to_row(), base_version=item.updatedAt
            )
            await self._log(actor, item_id, action, details)
        return updated

    async def _log(self, actor: SessionContext, item_id: str, action: InventoryAction, details: str) -> InventoryLog:
        entry = InventoryLog(
            id=new_id(),
            itemId=item_id,
            action=action.value,
            userId=actor.user_id,
            details=details,
            createdAt=utc_now_iso(),
        )
        await self.writer.save(SyncEntity.INVENTORY_LOG, SyncAction.CREATE, entry.model_dump())
        return entry

    # -- deletion -------------------------------------------------------

    async def soft_delete(self, actor: SessionContext, item_id: str) -> None:
        async with self._locks.hold(item_id):
            await self.lifecycle.soft_delete(SyncEntity.INVENTORY, item_id, actor)
            await self._log(actor, item_id, InventoryAction.DELETED, "Moved to trash")

    async def restore(self, actor: SessionContext, item_id: str) -> InventoryItem:
        async with self._locks.hold(item_id):
            await self.lifecycle.restore(SyncEntity.INVENTORY, item_id, actor)
            await self._log(actor, item_id, InventoryAction.RESTORED, "Restored from trash")
        return await self.get_item(item_id)

    async def purge(self, actor: SessionContext, item_id: str) -> None:
        async with self._locks.hold(item_id):
            await self.lifecycle.purge(SyncEntity.INVENTORY, item_id, actor)
            await self._log(actor, item_id, InventoryAction.PURGED, "Permanently deleted")
