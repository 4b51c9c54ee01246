import enum
from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .common import Attachment, Money


class PaymentMethod(str, enum.Enum):
    cash = "cash"
    upi = "upi"
    card = "card"


class ExpenseBase(BaseModel):
    category: str = Field(min_length=1, max_length=100)
    item: str = Field(min_length=1, max_length=255)
    amount: Decimal = Field(ge=0)
    payment_method: PaymentMethod = PaymentMethod.cash
    date: Optional[date_type] = None
    note: Optional[str] = None
    attachments: List[Attachment] = Field(default_factory=list)

    @field_validator("category", "item", mode="before")
    @classmethod
    def strip_required(cls, v):
        return str(v).strip() if v is not None else v

    @field_validator("note", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class ExpenseCreate(ExpenseBase):
    # Only honoured for admins; staff always book against their own centre
    centre: Optional[str] = None


class ExpenseUpdate(BaseModel):
    category: Optional[str] = None
    item: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    payment_method: Optional[PaymentMethod] = None
    date: Optional[date_type] = None
    note: Optional[str] = None
    centre: Optional[str] = None
    attachments: Optional[List[Attachment]] = None

    @field_validator("category", "item", mode="before")
    @classmethod
    def non_blank(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class ExpenseResponse(BaseModel):
    # Opaque identifier; UUIDs from the database are rendered as strings
    id: str
    amount: Money
    category: str
    item: str
    centre: str
    payment_method: str = PaymentMethod.cash.value
    timestamp: datetime
    date: Optional[date_type] = None
    created_by: str
    note: Optional[str] = None
    attachments: List[Attachment] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def id_to_str(cls, v):
        return str(v) if v is not None else v

    @field_validator("attachments", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or []

    class Config:
        from_attributes = True


class ExpenseCreatedResponse(BaseModel):
    expense: ExpenseResponse
    alert_url: Optional[str] = None


class ExpenseListResponse(BaseModel):
    items: List[ExpenseResponse]
    count: int
    total_amount: Money
    category_totals: Dict[str, Money]
