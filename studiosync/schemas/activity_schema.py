"""Audit trail and notification records."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ActivityLog(BaseModel):
    """Immutable audit entry: who did what to which entity."""
    model_config = ConfigDict(frozen=True)

    id: str
    userId: str
    userName: str
    action: str
    entityType: str
    entityId: Optional[str] = None
    details: Optional[str] = None
    createdAt: str


class Notification(BaseModel):
    """A fire-and-forget staff notification (e.g. NAS cleanup after delivery)."""

    id: str
    title: str
    message: str
    time: str
    read: bool = False
    type: str = "info"
    targetRoles: list[str] = Field(default_factory=list)
    bookingId: Optional[str] = None
