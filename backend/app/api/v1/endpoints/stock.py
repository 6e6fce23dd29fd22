from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db, get_request_context, get_services
from backend.app.schemas.stock import LowStockRowRead, ReorderSettingsUpdate, StockRead
from backend.services.container import Services
from backend.services.context import RequestContext
from backend.services.inventory import UNSET
from backend.services.lookups import get_item, get_location

router = APIRouter(prefix="/stock")


@router.get("/low", response_model=list[LowStockRowRead])
def list_low_stock(
    location_id: int | None = None,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    """Lignes du ledger sous leur point de commande, avec quantité suggérée."""
    return services.low_stock.find_low_stock_items(db, ctx, location_id=location_id)


@router.get("/{item_id}/{location_id}", response_model=StockRead)
def get_stock(
    item_id: int,
    location_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    """
    Stock (READ ONLY)
    - une ligne absente se lit à quantité 0 (persisted=false)
    """
    get_item(db, organization_id=ctx.organization_id, item_id=item_id)
    get_location(db, organization_id=ctx.organization_id, location_id=location_id)
    return services.ledger.get_location_inventory(db, item_id=item_id, location_id=location_id)


@router.put("/{item_id}/{location_id}/reorder-settings", response_model=StockRead)
def update_reorder_settings(
    item_id: int,
    location_id: int,
    payload: ReorderSettingsUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    sent = payload.model_dump(exclude_unset=True)
    services.adjustments.update_reorder_settings(
        db,
        ctx,
        item_id=item_id,
        location_id=location_id,
        reorder_point=payload.reorder_point,
        reorder_quantity=payload.reorder_quantity,
        max_stock=sent["max_stock"] if "max_stock" in sent else UNSET,
    )
    return services.ledger.get_location_inventory(db, item_id=item_id, location_id=location_id)
