from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db, get_request_context, get_services
from backend.app.db.models.core_types import ReceiptStatus
from backend.app.schemas.goods_receipt import (
    ConfirmReceiptRead,
    GoodsReceiptCreate,
    GoodsReceiptLineCreate,
    GoodsReceiptLineRead,
    GoodsReceiptLineUpdate,
    GoodsReceiptRead,
)
from backend.services.container import Services
from backend.services.context import RequestContext

router = APIRouter(prefix="/goods-receipts")


@router.get("", response_model=list[GoodsReceiptRead])
def list_receipts(
    status: ReceiptStatus | None = None,
    order_id: int | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    return services.receiving.list_receipts(
        db, ctx, status=status, order_id=order_id, limit=limit, offset=offset
    )


@router.post("", response_model=GoodsReceiptRead, status_code=201)
def create_receipt(
    payload: GoodsReceiptCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    return services.receiving.create_receipt(
        db,
        ctx,
        location_id=payload.location_id,
        order_id=payload.order_id,
        supplier_id=payload.supplier_id,
        notes=payload.notes,
    )


@router.get("/{receipt_id}", response_model=GoodsReceiptRead)
def get_receipt(
    receipt_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    return services.receiving.get_receipt(db, ctx, receipt_id=receipt_id)


@router.post("/{receipt_id}/lines", response_model=GoodsReceiptLineRead)
def add_line(
    receipt_id: int,
    payload: GoodsReceiptLineCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    return services.receiving.add_line(db, ctx, receipt_id=receipt_id, **payload.model_dump())


@router.patch("/lines/{line_id}", response_model=GoodsReceiptLineRead)
def update_line(
    line_id: int,
    payload: GoodsReceiptLineUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    # seuls les champs envoyés sont transmis ; les autres restent UNSET
    return services.receiving.update_line(db, ctx, line_id=line_id, **payload.model_dump(exclude_unset=True))


@router.delete("/lines/{line_id}", status_code=204)
def remove_line(
    line_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    services.receiving.remove_line(db, ctx, line_id=line_id)
    return Response(status_code=204)


@router.post("/{receipt_id}/confirm", response_model=ConfirmReceiptRead)
def confirm_receipt(
    receipt_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    return services.receiving.confirm_receipt(db, ctx, receipt_id=receipt_id)


@router.post("/{receipt_id}/cancel", response_model=GoodsReceiptRead)
def cancel_receipt(
    receipt_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    return services.receiving.cancel_receipt(db, ctx, receipt_id=receipt_id)
