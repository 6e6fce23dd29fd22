from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from backend.app.db.models.core_types import StockCountStatus


class StockCountSessionCreate(BaseModel):
    location_id: int
    notes: str | None = None


class StockCountLineUpsert(BaseModel):
    item_id: int
    counted_quantity: int = Field(ge=0)
    notes: str | None = None


class StockCountLineUpdate(BaseModel):
    counted_quantity: int = Field(ge=0)
    notes: str | None = None


class StockCountComplete(BaseModel):
    apply_adjustments: bool = True


class StockCountLineRead(BaseModel):
    id: int
    item_id: int
    counted_quantity: int
    system_quantity: int
    variance: int
    notes: str | None = None

    class Config:
        from_attributes = True


class StockCountSessionRead(BaseModel):
    id: int
    location_id: int
    status: StockCountStatus
    notes: str | None = None
    created_by_id: int | None = None
    created_at: datetime
    completed_at: datetime | None = None
    lines: list[StockCountLineRead] = Field(default_factory=list)

    class Config:
        from_attributes = True


class CountLineResultRead(BaseModel):
    line_id: int
    variance: int

    class Config:
        from_attributes = True


class CompletionResultRead(BaseModel):
    session_id: int
    adjusted_items: int

    class Config:
        from_attributes = True
