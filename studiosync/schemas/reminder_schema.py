"""Reminder and dashboard task models (dependents of a booking)."""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class Reminder(BaseModel):
    """Reminder as held in the local store."""
    id: str
    bookingId: Optional[str] = None
    title: str
    dueDate: str
    completed: bool = False
    type: str = "general"
    customIcon: Optional[str] = None
    deletedAt: Optional[int] = None

    @field_validator("completed", mode="before")
    @classmethod
    def _int_to_bool(cls, value: Any) -> bool:
        return bool(value)

    def to_row(self) -> dict[str, Any]:
        row = self.model_dump()
        row["completed"] = 1 if self.completed else 0
        return row


class ReminderCreate(BaseModel):
    id: Optional[str] = None
    bookingId: Optional[str] = None
    title: str = Field(min_length=3)
    dueDate: str
    completed: bool = False
    type: str = "general"
    customIcon: Optional[str] = None


class ReminderUpdate(BaseModel):
    bookingId: Optional[str] = None
    title: Optional[str] = Field(default=None, min_length=3)
    dueDate: Optional[str] = None
    completed: Optional[bool] = None
    type: Optional[str] = None
    customIcon: Optional[str] = None


class DashboardTask(BaseModel):
    """A to-do card on a staff dashboard, optionally tied to a booking."""
    id: str
    title: str
    time: Optional[str] = None
    createdAt: Optional[str] = None
    completed: bool = False
    type: str = "general"
    source: str = "manual"
    relatedBookingId: Optional[str] = None
    priority: str = "normal"
    deletedAt: Optional[int] = None

    @field_validator("completed", mode="before")
    @classmethod
    def _int_to_bool(cls, value: Any) -> bool:
        return bool(value)

    def to_row(self) -> dict[str, Any]:
        row = self.model_dump()
        row["completed"] = 1 if self.completed else 0
        return row
