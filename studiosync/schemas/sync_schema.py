"""Sync queue entries, conflict records and related enumerations."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class SyncAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class SyncEntity(str, Enum):
    BOOKING = "booking"
    REMINDER = "reminder"
    TASK = "dashboard_task"
    ACTIVITY_LOG = "activity_log"
    INVENTORY = "inventory"
    INVENTORY_LOG = "inventory_log"
    CONFLICT = "conflict"


class QueueStatus(str, Enum):
    PENDING = "pending"
    FAILED = "failed"  # dead letter, not drained until revived


class SyncQueueEntry(BaseModel):
    """One pending outbound mutation, payload in cloud (snake_case) form."""
    model_config = ConfigDict(frozen=True)

    id: str
    seq: int
    action: SyncAction
    entity: SyncEntity
    entity_id: str
    data: dict[str, Any]
    status: QueueStatus = QueueStatus.PENDING
    created_at: str
    retry_count: int = 0
    last_error: Optional[str] = None
    base_version: Optional[str] = None  # updatedAt the writer last read

    @property
    def key(self) -> tuple[str, str]:
        """Ordering key: entries sharing it are applied strictly in ``seq`` order."""
        return (self.entity.value, self.entity_id)


class ConflictStatus(str, Enum):
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    REJECTED = "REJECTED"


class ConflictDecision(str, Enum):
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"


class Conflict(BaseModel):
    """A proposed booking version that was not applied because of rank."""

    id: str
    booking_id: str
    proposed_by: str = ""
    proposed_by_name: str = ""
    proposed_by_rank: str = ""
    proposed_data: dict[str, Any] = Field(default_factory=dict)
    status: ConflictStatus = ConflictStatus.PENDING
    created_at: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == ConflictStatus.PENDING


class DrainReport(BaseModel):
    """Summary of one drain pass."""
    processed: int = 0
    failed: int = 0
    deferred: int = 0
    dead_lettered: int = 0
    skipped: bool = False
    remaining: int = 0
