from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator
import enum

from .common import Attachment


class ItemType(str, enum.Enum):
    stock = "Stock"
    asset = "Asset"


class AssetStatus(str, enum.Enum):
    available = "Available"
    assigned = "Assigned"
    needs_repair = "Needs Repair"
    discarded = "Discarded"


class InventoryBase(BaseModel):
    item_name: str = Field(min_length=1, max_length=255)
    quantity: int = Field(ge=0)
    original_quantity: Optional[int] = Field(default=None, ge=0)
    category: Optional[str] = None
    item_type: ItemType = ItemType.stock
    status: AssetStatus = AssetStatus.available
    assigned_to: Optional[str] = None
    attachments: List[Attachment] = Field(default_factory=list)

    @field_validator("item_name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return str(v).strip() if v is not None else v

    @field_validator("category", "assigned_to", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class InventoryCreate(InventoryBase):
    # Only honoured for admins
    centre: Optional[str] = None


class InventoryUpdate(BaseModel):
    item_name: Optional[str] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    original_quantity: Optional[int] = Field(default=None, ge=0)
    category: Optional[str] = None
    item_type: Optional[ItemType] = None
    status: Optional[AssetStatus] = None
    assigned_to: Optional[str] = None
    centre: Optional[str] = None
    attachments: Optional[List[Attachment]] = None


class InventoryResponse(BaseModel):
    # Opaque identifier; UUIDs from the database are rendered as strings
    id: str
    item_name: str
    category: Optional[str] = None
    centre: Optional[str] = None
    quantity: int
    original_quantity: Optional[int] = None
    damaged: int = 0
    repaired: int = 0
    item_type: str = ItemType.stock.value
    status: str = AssetStatus.available.value
    assigned_to: Optional[str] = None
    attachments: List[Attachment] = Field(default_factory=list)
    last_updated: Optional[datetime] = None
    last_used: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def id_to_str(cls, v):
        return str(v) if v is not None else v

    @field_validator("attachments", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or []

    @field_validator("damaged", "repaired", mode="before")
    @classmethod
    def none_to_zero(cls, v):
        return v or 0

    class Config:
        from_attributes = True


class QuantityChange(BaseModel):
    amount: int = Field(default=1, ge=1)


class QuantitySet(BaseModel):
    quantity: int = Field(ge=0)


class AssignRequest(BaseModel):
    assigned_to: str = Field(min_length=1)


class InventoryAlerts(BaseModel):
    low_stock: List[InventoryResponse]
    critical: List[InventoryResponse]
    out_of_stock: List[InventoryResponse]
    relative_low_stock: List[InventoryResponse]
