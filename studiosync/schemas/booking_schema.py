"""Booking data models, structured JSON payloads and availability results."""

import json
import logging
from datetime import date
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Workflow stages a booking moves through."""
    INQUIRY = "Inquiry"
    CONFIRMED = "Confirmed"
    SHOOTING = "Shooting"
    SHOOTING_COMPLETED = "Shooting Completed"
    SELECTION = "Selection"
    EDITING = "Editing"
    READY_TO_PRINT = "Ready to Print"
    PRINTING = "Printing"
    READY_FOR_PICKUP = "Ready for Pickup"
    DELIVERED = "Delivered"
    ARCHIVED = "Archived"
    CLIENT_DELAY = "Client Delay"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RentalType(str, Enum):
    FULL = "Full"
    PARTIAL = "Partial"


class BookingDetails(BaseModel):
    """Structured ``details`` payload. Unknown keys are preserved as-is."""
    model_config = ConfigDict(extra="allow")

    startTime: Optional[str] = None
    endTime: Optional[str] = None
    rentalType: Optional[RentalType] = None
    isPrivate: bool = False

    @field_validator("rentalType", mode="before")
    @classmethod
    def _lenient_rental_type(cls, value: Any) -> Any:
        if value in (None, ""):
            return None
        for member in RentalType:
            if str(value).lower() == member.value.lower():
                return member
        return None


class StatusHistoryEntry(BaseModel):
    """One immutable entry of a booking's status history."""
    model_config = ConfigDict(frozen=True)

    status: str
    timestamp: str
    note: Optional[str] = None


def _decode_json(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Discarding undecodable JSON payload: %.60s", value)
            return None
    return value


def parse_details(value: Any) -> BookingDetails:
    """Validate a stored ``details`` blob, falling back to empty details on drift."""
    raw = _decode_json(value)
    if not isinstance(raw, dict):
        return BookingDetails()
    try:
        return BookingDetails.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Booking details failed validation, using defaults: %s", exc)
        return BookingDetails()


def parse_status_history(value: Any) -> list[StatusHistoryEntry]:
    """Validate a stored status history, dropping malformed entries but keeping order."""
    raw = _decode_json(value)
    if not isinstance(raw, list):
        return []
    entries = []
    for item in raw:
        if isinstance(item, dict) and "note" not in item and "notes" in item:
            item = {**item, "note": item["notes"]}
        try:
            entries.append(StatusHistoryEntry.model_validate(item))
        except ValidationError:
            logger.warning("Dropping malformed status history entry: %r", item)
    return entries


def dump_details(details: BookingDetails) -> str:
    return json.dumps(details.model_dump(mode="json", exclude_unset=True), ensure_ascii=False)


def dump_status_history(history: list[StatusHistoryEntry]) -> str:
    return json.dumps([entry.model_dump(mode="json") for entry in history], ensure_ascii=False)


class Booking(BaseModel):
    """A booking as held in the local store (camelCase application fields)."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    clientId: str = ""
    clientName: str = "Unknown"
    clientPhone: str = ""
    category: str = "Wedding"
    title: str = "Untitled"
    location: str = ""
    shootDate: Optional[str] = None
    status: str = BookingStatus.INQUIRY.value
    totalAmount: float = 0.0
    paidAmount: float = 0.0
    currency: str = "IQD"
    exchangeRate: Optional[float] = None
    servicePackage: str = ""
    notes: str = ""
    details: BookingDetails = Field(default_factory=BookingDetails)
    statusHistory: list[StatusHistoryEntry] = Field(default_factory=list)

    createdBy: Optional[str] = None
    createdByName: Optional[str] = None
    updatedBy: Optional[str] = None
    updatedByName: Optional[str] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    lastEditorRank: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    deletedAt: Optional[int] = None

    selectionDeadline: Optional[str] = None
    actualSelectionDate: Optional[str] = None
    deliveryDeadline: Optional[str] = None
    photoEditCompletedAt: Optional[str] = None
    printCompletedAt: Optional[str] = None

    approvalStatus: Optional[str] = None
    approvedBy: Optional[str] = None
    approvedAt: Optional[str] = None
    client_token: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # NULL columns fall back to field defaults instead of failing validation
        if not isinstance(data, dict):
            return data
        return {
            key: value for key, value in data.items()
            if value is not None or key not in cls.model_fields
            or cls.model_fields[key].default is None
        }

    @field_validator("details", mode="before")
    @classmethod
    def _parse_details(cls, value: Any) -> BookingDetails:
        if isinstance(value, BookingDetails):
            return value
        return parse_details(value)

    @field_validator("statusHistory", mode="before")
    @classmethod
    def _parse_history(cls, value: Any) -> list[StatusHistoryEntry]:
        if isinstance(value, list) and all(isinstance(v, StatusHistoryEntry) for v in value):
            return value
        return parse_status_history(value)

    @property
    def is_deleted(self) -> bool:
        return self.deletedAt is not None

    def to_row(self) -> dict[str, Any]:
        """Serialize into a local-store row (JSON columns encoded as text)."""
        row = self.model_dump(exclude={"details", "statusHistory"})
        row["details"] = dump_details(self.details)
        row["statusHistory"] = dump_status_history(self.statusHistory)
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Booking":
        return cls.model_validate(row)


class BookingCreate(BaseModel):
    """Validated input for creating a booking."""

    id: Optional[str] = None
    clientName: str = Field(min_length=2)
    clientPhone: str = ""
    clientId: str = ""
    category: str = "Wedding"
    title: str = Field(min_length=3)
    location: str = ""
    shootDate: Optional[str] = None
    status: BookingStatus = BookingStatus.INQUIRY
    totalAmount: float = Field(default=0.0, ge=0)
    paidAmount: float = Field(default=0.0, ge=0)
    currency: str = "IQD"
    exchangeRate: Optional[float] = None
    servicePackage: str = ""
    notes: str = ""
    details: BookingDetails = Field(default_factory=BookingDetails)
    approvalStatus: Optional[ApprovalStatus] = None
    client_token: Optional[str] = None

    @field_validator("shootDate")
    @classmethod
    def _iso_date(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            date.fromisoformat(value.strip()[:10])
        except ValueError:
            raise ValueError(f"shootDate must be YYYY-MM-DD, got {value!r}") from None
        return value.strip()

    @model_validator(mode="after")
    def _paid_within_total(self) -> "BookingCreate":
        if self.paidAmount > self.totalAmount:
            raise ValueError("Paid amount cannot exceed total amount")
        return self


class BookingUpdate(BaseModel):
    """
    Partial update; only fields explicitly set are applied.

    Status, its history and approval fields are not editable here: they
    change through ``update_status`` and the approval workflow.
    """
    model_config = ConfigDict(extra="forbid")

    clientName: Optional[str] = Field(default=None, min_length=2)
    clientPhone: Optional[str] = None
    category: Optional[str] = None
    title: Optional[str] = Field(default=None, min_length=3)
    location: Optional[str] = None
    shootDate: Optional[str] = None
    totalAmount: Optional[float] = Field(default=None, ge=0)
    paidAmount: Optional[float] = Field(default=None, ge=0)
    currency: Optional[str] = None
    exchangeRate: Optional[float] = None
    servicePackage: Optional[str] = None
    notes: Optional[str] = None
    details: Optional[BookingDetails] = None
    actualSelectionDate: Optional[str] = None
    deliveryDeadline: Optional[str] = None
    photoEditCompletedAt: Optional[str] = None
    printCompletedAt: Optional[str] = None


class ConflictingBooking(BaseModel):
    title: str
    startTime: str = ""
    endTime: str = ""


class AvailabilityResult(BaseModel):
    """Outcome of an overlap check for a proposed time window."""
    available: bool
    hasConflict: bool
    conflictType: Optional[str] = None  # "partial" | "full"
    conflictingBooking: Optional[ConflictingBooking] = None
    conflictMessage: Optional[str] = None
