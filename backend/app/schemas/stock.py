from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class StockRead(BaseModel):
    item_id: int
    location_id: int

    quantity: int
    reorder_point: int | None = None
    reorder_quantity: int | None = None
    max_stock: int | None = None
    persisted: bool  # False = aucune ligne en base (lecture à zéro)

    class Config:
        from_attributes = True


class ReorderSettingsUpdate(BaseModel):
    reorder_point: int | None = Field(default=None, ge=0)
    reorder_quantity: int | None = Field(default=None, gt=0)
    max_stock: int | None = Field(default=None, ge=0)


class AdjustmentCreate(BaseModel):
    item_id: int
    location_id: int
    quantity: int
    reason: str | None = Field(default=None, max_length=255)
    note: str | None = None


class TransferCreate(BaseModel):
    item_id: int
    from_location_id: int
    to_location_id: int
    quantity: int = Field(gt=0)
    note: str | None = None


class AdjustmentResultRead(BaseModel):
    adjustment_id: int
    previous_quantity: int
    new_quantity: int
    reorder_point: int | None = None

    class Config:
        from_attributes = True


class TransferResultRead(BaseModel):
    source: AdjustmentResultRead
    destination: AdjustmentResultRead


class AdjustmentRead(BaseModel):
    id: int
    item_id: int
    location_id: int
    quantity: int
    reason: str | None = None
    note: str | None = None
    created_by_id: int | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class LowStockRowRead(BaseModel):
    item_id: int
    item_name: str
    sku: str | None = None
    location_id: int
    location_name: str
    quantity: int
    reorder_point: int
    reorder_quantity: int | None = None
    max_stock: int | None = None
    shortfall: int
    suggested_quantity: int

    class Config:
        from_attributes = True
