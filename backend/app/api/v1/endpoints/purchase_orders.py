from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db, get_request_context, get_services
from backend.app.schemas.order import (
    DraftFromLowStockCreate,
    DraftOrdersRead,
    ReceivingMismatchRead,
    SendOrderRead,
)
from backend.services.container import Services
from backend.services.context import RequestContext

router = APIRouter(prefix="/orders")


@router.post("/draft-from-low-stock", response_model=DraftOrdersRead, status_code=201)
def draft_from_low_stock(
    payload: DraftFromLowStockCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    """Une commande DRAFT par fournisseur par défaut ; items sans fournisseur -> skipped_items."""
    return services.procurement.draft_orders_from_low_stock(db, ctx, item_ids=payload.item_ids)


@router.get("/receiving-mismatches", response_model=list[ReceivingMismatchRead])
def receiving_mismatches(
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    return services.receiving.find_receiving_mismatches(db, ctx, limit=limit)


@router.post("/{order_id}/send", response_model=SendOrderRead)
def send_order(
    order_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    return services.procurement.send_order(db, ctx, order_id=order_id)
