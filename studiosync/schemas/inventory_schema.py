"""Inventory equipment, consumable pools and the append-only inventory log."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class InventoryType(str, Enum):
    CAMERA = "camera"
    LENS = "lens"
    LIGHT = "light"
    ACCESSORY = "accessory"
    DRONE = "drone"
    AUDIO = "audio"


class InventoryStatus(str, Enum):
    STORAGE = "storage"
    DEPLOYED = "deployed"
    MAINTENANCE = "maintenance"


class InventoryAction(str, Enum):
    CREATED = "created"
    ASSIGNED = "assigned"
    RETURNED = "returned"
    MAINTENANCE = "maintenance"
    MAINTENANCE_DONE = "maintenance_done"
    BATTERY_CHARGE = "battery_charge"
    BATTERY_DRAIN = "battery_drain"
    CARD_FORMAT = "card_format"
    CARD_FULL = "card_full"
    NOTES = "notes"
    DELETED = "deleted"
    RESTORED = "restored"
    PURGED = "purged"


class BatteryPool(BaseModel):
    total: int = Field(ge=0)
    charged: int = Field(ge=0)

    @model_validator(mode="after")
    def _charged_within_total(self) -> "BatteryPool":
        if self.charged > self.total:
            raise ValueError(f"charged ({self.charged}) cannot exceed total ({self.total})")
        return self


class MemoryPool(BaseModel):
    total: int = Field(ge=0)
    free: int = Field(ge=0)

    @model_validator(mode="after")
    def _free_within_total(self) -> "MemoryPool":
        if self.free > self.total:
            raise ValueError(f"free ({self.free}) cannot exceed total ({self.total})")
        return self


class InventoryItem(BaseModel):
    """A physical asset. Status and assignee must agree."""
    model_config = ConfigDict(validate_assignment=False)

    id: str
    name: str = Field(min_length=1)
    type: InventoryType
    icon: Optional[str] = None
    status: InventoryStatus = InventoryStatus.STORAGE
    assignedTo: Optional[str] = None
    batteryPool: Optional[BatteryPool] = None
    memoryPool: Optional[MemoryPool] = None
    notes: str = ""
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    deletedAt: Optional[int] = None

    @model_validator(mode="after")
    def _status_matches_assignee(self) -> "InventoryItem":
        if self.status == InventoryStatus.DEPLOYED and not self.assignedTo:
            raise ValueError("deployed items must have an assignee")
        if self.status != InventoryStatus.DEPLOYED and self.assignedTo:
            raise ValueError(f"{self.status.value} items cannot have an assignee")
        return self

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "icon": self.icon,
            "status": self.status.value,
            "assignedTo": self.assignedTo,
            "batteryTotal": self.batteryPool.total if self.batteryPool else None,
            "batteryCharged": self.batteryPool.charged if self.batteryPool else None,
            "memoryTotal": self.memoryPool.total if self.memoryPool else None,
            "memoryFree": self.memoryPool.free if self.memoryPool else None,
            "notes": self.notes,
            "createdAt": self.createdAt,
            "updatedAt": self.updatedAt,
            "deletedAt": self.deletedAt,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "InventoryItem":
        battery = None
        if row.get("batteryTotal") is not None:
            battery = {"total": row["batteryTotal"], "charged": row.get("batteryCharged") or 0}
        memory = None
        if row.get("memoryTotal") is not None:
            memory = {"total": row["memoryTotal"], "free": row.get("memoryFree") or 0}
        return cls.model_validate({
            "id": row["id"],
            "name": row.get("name") or "Unnamed",
            "type": row.get("type") or InventoryType.ACCESSORY.value,
            "icon": row.get("icon"),
            "status": row.get("status") or InventoryStatus.STORAGE.value,
            "assignedTo": row.get("assignedTo"),
            "batteryPool": battery,
            "memoryPool": memory,
            "notes": row.get("notes") or "",
            "createdAt": row.get("createdAt"),
            "updatedAt": row.get("updatedAt"),
            "deletedAt": row.get("deletedAt"),
        })


class CustomItemCreate(BaseModel):
    name: str = Field(min_length=1)
    type: InventoryType
    icon: Optional[str] = None
    batteryTotal: int = Field(default=0, ge=0)
    memoryTotal: int = Field(default=0, ge=0)
    notes: str = ""


class InventoryLog(BaseModel):
    """Immutable audit record of one inventory action."""
    model_config = ConfigDict(frozen=True)

    id: str
    itemId: str
    action: str
    userId: str
    details: str = ""
    createdAt: str


class CatalogTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: InventoryType
    icon: str
    batteryTotal: int = 0
    memoryTotal: int = 0


def _camera(name: str, battery: int, memory: int, icon: str = "📷") -> CatalogTemplate:
    return CatalogTemplate(
        name=name, type=InventoryType.CAMERA, icon=icon, batteryTotal=battery, memoryTotal=memory
    )


def _lens(name: str) -> CatalogTemplate:
    return CatalogTemplate(name=name, type=InventoryType.LENS, icon="⭕")


CATALOG: dict[str, CatalogTemplate] = {
    t.name: t for t in [
        _camera("Canon EOS R", 2, 2),
        _camera("Canon EOS R3", 4, 2),
        _camera("Canon EOS R5", 3, 2),
        _camera("Canon EOS R5 C", 4, 3, icon="🎬"),
        _camera("Canon EOS R5 Mark II", 3, 2),
        _camera("Canon EOS R6 Mark II", 3, 2),
        _camera("Canon EOS R6 Mark III", 3, 2),
        _camera("Canon EOS R7", 2, 2),
        _camera("Canon EOS R8", 2, 1),
        _camera("Canon EOS R10", 2, 1),
        _camera("Canon EOS R50", 1, 1),
        _camera("Canon EOS C70", 4, 2, icon="🎬"),
        _lens("RF 15-35mm f/2.8 L IS USM"),
        _lens("RF 24-70mm f/2.8 L IS USM"),
        _lens("RF 24-105mm f/4 L IS USM"),
        _lens("RF 28-70mm f/2 L USM"),
        _lens("RF 70-200mm f/2.8 L IS USM"),
        _lens("RF 35mm f/1.4 L VCM"),
        _lens("RF 50mm f/1.2 L USM"),
        _lens("RF 85mm f/1.2 L USM"),
        _lens("RF 100mm f/2.8 L Macro IS USM"),
        _lens("RF 135mm f/1.8 L IS USM"),
    ]
}
