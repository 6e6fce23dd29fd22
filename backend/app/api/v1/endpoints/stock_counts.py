from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db, get_request_context, get_services
from backend.app.db.models.core_types import StockCountStatus
from backend.app.schemas.stock_count import (
    CompletionResultRead,
    CountLineResultRead,
    StockCountComplete,
    StockCountLineUpdate,
    StockCountLineUpsert,
    StockCountSessionCreate,
    StockCountSessionRead,
)
from backend.services.container import Services
from backend.services.context import RequestContext

router = APIRouter(prefix="/stock-counts")


@router.get("", response_model=list[StockCountSessionRead])
def list_sessions(
    status: StockCountStatus | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    return services.stock_counts.list_sessions(db, ctx, status=status, limit=limit, offset=offset)


@router.post("", response_model=StockCountSessionRead, status_code=201)
def create_session(
    payload: StockCountSessionCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    return services.stock_counts.create_session(db, ctx, location_id=payload.location_id, notes=payload.notes)


@router.get("/{session_id}", response_model=StockCountSessionRead)
def get_session(
    session_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    return services.stock_counts.get_session(db, ctx, session_id=session_id)


@router.delete("/{session_id}", status_code=204)
def delete_session(
    session_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    services.stock_counts.delete_session(db, ctx, session_id=session_id)
    return Response(status_code=204)


@router.post("/{session_id}/lines", response_model=CountLineResultRead)
def upsert_line(
    session_id: int,
    payload: StockCountLineUpsert,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    return services.stock_counts.add_or_update_line(
        db,
        ctx,
        session_id=session_id,
        item_id=payload.item_id,
        counted_quantity=payload.counted_quantity,
        notes=payload.notes,
    )


@router.patch("/lines/{line_id}", response_model=CountLineResultRead)
def update_line(
    line_id: int,
    payload: StockCountLineUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    return services.stock_counts.update_line(
        db, ctx, line_id=line_id, counted_quantity=payload.counted_quantity, notes=payload.notes
    )


@router.delete("/lines/{line_id}", status_code=204)
def remove_line(
    line_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    services.stock_counts.remove_line(db, ctx, line_id=line_id)
    return Response(status_code=204)


@router.post("/{session_id}/complete", response_model=CompletionResultRead)
def complete_session(
    session_id: int,
    payload: StockCountComplete,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    return services.stock_counts.complete_session(
        db, ctx, session_id=session_id, apply_adjustments=payload.apply_adjustments
    )


@router.post("/{session_id}/cancel", response_model=StockCountSessionRead)
def cancel_session(
    session_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    services: Services = Depends(get_services),
):
    return services.stock_counts.cancel_session(db, ctx, session_id=session_id)
