from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db, get_request_context, get_services
from backend.app.schemas.stock import (
    AdjustmentCreate,
    AdjustmentRead,
    AdjustmentResultRead,
    TransferCreate,
    TransferResultRead,
)
from backend.services.container import Services
from backend.services.context import RequestContext

router = APIRouter(prefix="/stock-movements")


@router.get("/adjustments", response_model=list[AdjustmentRead])
def list_adjustments(
    item_id: int | None = None,
    location_id: int | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    return services.adjustments.list_adjustments(
        db, ctx, item_id=item_id, location_id=location_id, limit=limit
    )


@router.post("/adjustments", response_model=AdjustmentResultRead, status_code=201)
def create_adjustment(
    payload: AdjustmentCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    return services.adjustments.record_adjustment(
        db,
        ctx,
        item_id=payload.item_id,
        location_id=payload.location_id,
        quantity=payload.quantity,
        reason=payload.reason,
        note=payload.note,
    )


@router.post("/transfer", response_model=TransferResultRead, status_code=201)
def transfer_stock(
    payload: TransferCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    source, destination = services.adjustments.transfer_stock(
        db,
        ctx,
        item_id=payload.item_id,
        from_location_id=payload.from_location_id,
        to_location_id=payload.to_location_id,
        quantity=payload.quantity,
        note=payload.note,
    )
    return TransferResultRead(
        source=AdjustmentResultRead.model_validate(source),
        destination=AdjustmentResultRead.model_validate(destination),
    )
