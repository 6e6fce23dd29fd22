from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from backend.app.db.models.core_types import OrderStatus


class DraftFromLowStockCreate(BaseModel):
    item_ids: list[int] = Field(default_factory=list)


class DraftOrderSummaryRead(BaseModel):
    order_id: int
    supplier_id: int
    item_count: int
    total_quantity: int

    class Config:
        from_attributes = True


class DraftOrdersRead(BaseModel):
    orders: list[DraftOrderSummaryRead]
    skipped_items: list[str]

    class Config:
        from_attributes = True


class SendOrderRead(BaseModel):
    order_id: int
    supplier_id: int
    total_amount: Decimal
    item_count: int

    class Config:
        from_attributes = True


class MismatchLineRead(BaseModel):
    item_id: int
    item_name: str
    ordered: int
    received: int

    class Config:
        from_attributes = True


class ReceivingMismatchRead(BaseModel):
    order_id: int
    reference: str | None = None
    status: OrderStatus
    items: list[MismatchLineRead]

    class Config:
        from_attributes = True
