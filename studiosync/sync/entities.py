"""Registry of synchronized entities: local table, cloud table and field mapping."""

from dataclasses import dataclass

from sqlalchemy import Table

from studiosync.cloud import mapping
from studiosync.schemas.sync_schema import SyncEntity
from studiosync.store import tables


@dataclass(frozen=True)
class EntitySpec:
    entity: SyncEntity
    local_table: Table
    cloud_table: str
    mapping: mapping.TableMapping


REGISTRY: dict[SyncEntity, EntitySpec] = {
    spec.entity: spec for spec in [
        EntitySpec(SyncEntity.BOOKING, tables.bookings, "bookings", mapping.BOOKING_MAPPING),
        EntitySpec(SyncEntity.REMINDER, tables.reminders, "reminders", mapping.REMINDER_MAPPING),
        EntitySpec(SyncEntity.TASK, tables.dashboard_tasks, "dashboard_tasks", mapping.TASK_MAPPING),
        EntitySpec(
            SyncEntity.ACTIVITY_LOG, tables.activity_logs, "activity_logs",
            mapping.ACTIVITY_LOG_MAPPING,
        ),
        EntitySpec(SyncEntity.INVENTORY, tables.inventory, "inventory", mapping.INVENTORY_MAPPING),
        EntitySpec(
            SyncEntity.INVENTORY_LOG, tables.inventory_logs, "inventory_logs",
            mapping.INVENTORY_LOG_MAPPING,
        ),
        EntitySpec(
            SyncEntity.CONFLICT, tables.booking_conflicts, "booking_conflicts",
            mapping.CONFLICT_MAPPING,
        ),
    ]
}


def spec_for(entity: SyncEntity) -> EntitySpec:
    return REGISTRY[SyncEntity(entity)]
