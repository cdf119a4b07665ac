"""
Field mapping between local camelCase rows and cloud snake_case rows.

The two schemas evolve independently, so reading a cloud row is lenient:
each local field tries its cloud column, then known aliases, then its own
local name, and finally a default.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from studiosync.utils import iso_to_ms, ms_to_iso

logger = logging.getLogger(__name__)

Converter = Callable[[Any], Any]


def _json_out(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Sending undecodable JSON column as null: %.60s", value)
            return None
    return value


def _json_in(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def _flag_out(value: Any) -> bool:
    return bool(value)


def _flag_in(value: Any) -> int:
    return 1 if value else 0


def _ms_in(value: Any) -> Optional[int]:
    if isinstance(value, (int, float)):
        return int(value)
    return iso_to_ms(value)


@dataclass(frozen=True)
class FieldSpec:
    local: str
    cloud: Optional[str] = None
    aliases: tuple[str, ...] = ()
    default: Any = None
    to_cloud: Optional[Converter] = None
    to_local: Optional[Converter] = None
    push: bool = True  # False: local mirror column, filled from the cloud but never sent

    @property
    def cloud_name(self) -> str:
        return self.cloud or self.local


def json_field(local: str, cloud: Optional[str] = None, default: Any = None) -> FieldSpec:
    return FieldSpec(local, cloud, default=default, to_cloud=_json_out, to_local=_json_in)


def flag_field(local: str, cloud: Optional[str] = None) -> FieldSpec:
    return FieldSpec(local, cloud, default=0, to_cloud=_flag_out, to_local=_flag_in)


def deleted_at_field() -> FieldSpec:
    return FieldSpec("deletedAt", "deleted_at", to_cloud=ms_to_iso, to_local=_ms_in)


@dataclass(frozen=True)
class TableMapping:
    fields: tuple[FieldSpec, ...]

    def to_cloud(self, local_row: dict[str, Any]) -> dict[str, Any]:
        """Translate the local columns present in ``local_row``."""
        out: dict[str, Any] = {}
        for spec in self.fields:
            if not spec.push or spec.local not in local_row:
                continue
            value = local_row[spec.local]
            if spec.to_cloud is not None and value is not None:
                value = spec.to_cloud(value)
            out[spec.cloud_name] = value
        return out

    def to_local(self, cloud_row: dict[str, Any]) -> dict[str, Any]:
        """Translate a full cloud row, filling every local column."""
        out: dict[str, Any] = {}
        for spec in self.fields:
            value = self._lookup(cloud_row, spec)
            if value is None:
                out[spec.local] = spec.default
                continue
            out[spec.local] = spec.to_local(value) if spec.to_local is not None else value
        return out

    def _lookup(self, row: dict[str, Any], spec: FieldSpec) -> Any:
        for name in (spec.cloud_name, *spec.aliases, spec.local):
            value = row.get(name)
            if value is not None:
                return value
        return None

    def cloud_column(self, local: str) -> str:
        for spec in self.fields:
            if spec.local == local:
                return spec.cloud_name
        raise KeyError(local)


BOOKING_MAPPING = TableMapping((
    FieldSpec("id"),
    FieldSpec("clientId", "client_id", default=""),
    FieldSpec("clientName", "client_name", aliases=("client",), default="Unknown"),
    FieldSpec("clientPhone", "client_phone", aliases=("phone",), default=""),
    FieldSpec("category", default="Wedding"),
    FieldSpec("title", default="Untitled"),
    FieldSpec("location", default=""),
    FieldSpec("shootDate", "shoot_date", aliases=("date",)),
    FieldSpec("status", default="Inquiry"),
    FieldSpec("totalAmount", "total_amount", aliases=("amount",), default=0),
    FieldSpec("paidAmount", "paid_amount", default=0),
    FieldSpec("currency", default="IQD"),
    FieldSpec("exchangeRate", "exchange_rate"),
    FieldSpec("servicePackage", "service_package", aliases=("package",), default=""),
    FieldSpec("notes", default=""),
    json_field("details", default="{}"),
    json_field("statusHistory", "status_history", default="[]"),
    FieldSpec("createdBy", "created_by"),
    FieldSpec("createdByName", "created_by_name"),
    FieldSpec("updatedBy", "updated_by"),
    FieldSpec("updatedByName", "updated_by_name"),
    FieldSpec("created_by", push=False),
    FieldSpec("updated_by", push=False),
    FieldSpec("lastEditorRank", "last_editor_rank"),
    FieldSpec("createdAt", "created_at"),
    FieldSpec("updatedAt", "updated_at"),
    deleted_at_field(),
    FieldSpec("selectionDeadline", "selection_deadline"),
    FieldSpec("actualSelectionDate", "actual_selection_date"),
    FieldSpec("deliveryDeadline", "delivery_deadline"),
    FieldSpec("photoEditCompletedAt", "photo_edit_completed_at"),
    FieldSpec("printCompletedAt", "print_completed_at"),
    FieldSpec("approvalStatus", "approval_status"),
    FieldSpec("approvedBy", "approved_by"),
    FieldSpec("approvedAt", "approved_at"),
    FieldSpec("client_token"),
))

REMINDER_MAPPING = TableMapping((
    FieldSpec("id"),
    FieldSpec("bookingId", "booking_id"),
    FieldSpec("title", default="Untitled"),
    FieldSpec("dueDate", "due_date", aliases=("date",), default=""),
    flag_field("completed"),
    FieldSpec("type", default="general"),
    FieldSpec("customIcon", "custom_icon"),
    deleted_at_field(),
))

TASK_MAPPING = TableMapping((
    FieldSpec("id"),
    FieldSpec("title", default="Untitled"),
    FieldSpec("time"),
    FieldSpec("createdAt", "created_at"),
    flag_field("completed"),
    FieldSpec("type", default="general"),
    FieldSpec("source", default="manual"),
    FieldSpec("relatedBookingId", "related_booking_id"),
    FieldSpec("priority", default="normal"),
    deleted_at_field(),
))

ACTIVITY_LOG_MAPPING = TableMapping((
    FieldSpec("id"),
    FieldSpec("userId", "user_id", default=""),
    FieldSpec("userName", "user_name", default=""),
    FieldSpec("action", default=""),
    FieldSpec("entityType", "entity_type", default=""),
    FieldSpec("entityId", "entity_id"),
    FieldSpec("details"),
    FieldSpec("createdAt", "created_at", default=""),
))

INVENTORY_MAPPING = TableMapping((
    FieldSpec("id"),
    FieldSpec("name", default="Unnamed"),
    FieldSpec("type", default="accessory"),
    FieldSpec("icon"),
    FieldSpec("status", default="storage"),
    FieldSpec("assignedTo", "assigned_to"),
    FieldSpec("batteryCharged", "battery_charged"),
    FieldSpec("batteryTotal", "battery_total"),
    FieldSpec("memoryFree", "memory_free"),
    FieldSpec("memoryTotal", "memory_total"),
    FieldSpec("notes", default=""),
    FieldSpec("createdAt", "created_at"),
    FieldSpec("updatedAt", "updated_at"),
    deleted_at_field(),
))

INVENTORY_LOG_MAPPING = TableMapping((
    FieldSpec("id"),
    FieldSpec("itemId", "item_id", default=""),
    FieldSpec("action", default=""),
    FieldSpec("userId", "user_id", default=""),
    FieldSpec("details", default=""),
    FieldSpec("createdAt", "created_at", default=""),
))

CONFLICT_MAPPING = TableMapping((
    FieldSpec("id"),
    FieldSpec("booking_id", default=""),
    FieldSpec("proposed_by"),
    FieldSpec("proposed_by_name"),
    FieldSpec("proposed_by_rank"),
    json_field("proposed_data", default="{}"),
    FieldSpec("status", default="PENDING"),
    FieldSpec("created_at"),
    FieldSpec("resolved_by"),
    FieldSpec("resolved_at"),
))
