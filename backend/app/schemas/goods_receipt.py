from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from backend.app.db.models.core_types import OrderStatus, ReceiptStatus


class GoodsReceiptCreate(BaseModel):
    location_id: int
    order_id: int | None = None
    supplier_id: int | None = None
    notes: str | None = None


class GoodsReceiptLineCreate(BaseModel):
    item_id: int
    quantity: int = Field(default=0, ge=0)
    skipped: bool = False
    batch_number: str | None = Field(default=None, max_length=64)
    expiry_date: date | None = None
    notes: str | None = None


class GoodsReceiptLineUpdate(BaseModel):
    # champs absents du JSON = inchangés (exclude_unset côté endpoint)
    quantity: int | None = Field(default=None, ge=0)
    skipped: bool | None = None
    batch_number: str | None = Field(default=None, max_length=64)
    expiry_date: date | None = None
    notes: str | None = None


class GoodsReceiptLineRead(BaseModel):
    id: int
    item_id: int
    quantity: int
    skipped: bool
    batch_number: str | None = None
    expiry_date: date | None = None
    notes: str | None = None

    class Config:
        from_attributes = True


class GoodsReceiptRead(BaseModel):
    id: int
    location_id: int
    order_id: int | None = None
    supplier_id: int | None = None
    status: ReceiptStatus
    notes: str | None = None
    created_by_id: int | None = None
    created_at: datetime
    received_at: datetime | None = None
    lines: list[GoodsReceiptLineRead] = Field(default_factory=list)

    class Config:
        from_attributes = True


class ConfirmReceiptRead(BaseModel):
    receipt_id: int
    lines_processed: int
    low_stock_items: list[int] = Field(default_factory=list)
    order_id: int | None = None
    order_status: OrderStatus | None = None

    class Config:
        from_attributes = True
