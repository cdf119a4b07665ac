"""
Ownership graph: which entities own which dependents.

Dependents have no lifecycle of their own. They are removed outright when
their owner is soft-deleted or purged, and restoring the owner does not
bring them back.
"""

from dataclasses import dataclass

from studiosync.schemas.sync_schema import SyncEntity


@dataclass(frozen=True)
class Dependent:
    entity: SyncEntity
    foreign_key: str  # local column pointing at the owner's id


OWNERSHIP: dict[SyncEntity, tuple[Dependent, ...]] = {
    SyncEntity.BOOKING: (
        Dependent(SyncEntity.REMINDER, "bookingId"),
        Dependent(SyncEntity.TASK, "relatedBookingId"),
    ),
}

# Entities with a deletedAt column, subject to restore and the retention sweep
SOFT_DELETABLE: tuple[SyncEntity, ...] = (
    SyncEntity.BOOKING,
    SyncEntity.REMINDER,
    SyncEntity.TASK,
    SyncEntity.INVENTORY,
)


def dependents_of(entity: SyncEntity) -> tuple[Dependent, ...]:
    return OWNERSHIP.get(SyncEntity(entity), ())
