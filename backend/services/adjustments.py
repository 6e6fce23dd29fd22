from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.db.models.core_types import Role
from backend.app.db.models.models_v1 import StockAdjustment
from backend.app.db.session import unit_of_work
from backend.services.audit import AuditService
from backend.services.context import RequestContext, require_role
from backend.services.errors import BusinessRuleViolationError, ValidationError
from backend.services.inventory import UNSET, InventoryLedger, Unset
from backend.services.lookups import get_item, get_location
from backend.services.notifications import LowStockNotifier, LowStockSignal

logger = logging.getLogger("inventory.adjustments")


def create_stock_adjustment(
    db: Session,
    ctx: RequestContext,
    *,
    item_id: int,
    location_id: int,
    quantity: int,
    reason: str | None = None,
    note: str | None = None,
) -> StockAdjustment:
    """
    Ajoute un fait au journal des ajustements (append-only).
    Seul point de création des StockAdjustment dans le code.
    """
    if quantity == 0:
        raise ValidationError("Adjustment quantity cannot be zero")

    fact = StockAdjustment(
        organization_id=ctx.organization_id,
        item_id=item_id,
        location_id=location_id,
        quantity=quantity,
        reason=reason,
        note=note,
        created_by_id=ctx.user_id,
    )
    db.add(fact)
    db.flush()
    return fact


def _require_whole_number(value, label: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{label} must be a whole number", {"value": value})


@dataclass(frozen=True)
class AdjustmentResult:
    adjustment_id: int
    previous_quantity: int
    new_quantity: int
    reorder_point: int | None


class StockAdjustmentService:
    def __init__(
        self,
        ledger: InventoryLedger,
        notifier: LowStockNotifier,
        audit: AuditService,
    ) -> None:
        self.ledger = ledger
        self.notifier = notifier
        self.audit = audit

    def record_adjustment(
        self,
        db: Session,
        ctx: RequestContext,
        *,
        item_id: int,
        location_id: int,
        quantity: int,
        reason: str | None = None,
        note: str | None = None,
    ) -> AdjustmentResult:
        require_role(ctx, Role.staff)
        _require_whole_number(quantity, "Adjustment quantity")
        if quantity == 0:
            raise ValidationError("Adjustment quantity cannot be zero")

        with unit_of_work(db):
            change = self.ledger.adjust_stock(
                db,
                organization_id=ctx.organization_id,
                item_id=item_id,
                location_id=location_id,
                delta=quantity,
            )
            fact = create_stock_adjustment(
                db,
                ctx,
                item_id=item_id,
                location_id=location_id,
                quantity=quantity,
                reason=reason,
                note=note,
            )
            self.audit.record(
                db,
                ctx,
                action="STOCK_ADJUSTED",
                entity_type="StockAdjustment",
                entity_id=fact.id,
                changes={
                    "item_id": item_id,
                    "location_id": location_id,
                    "quantity": quantity,
                    "reason": reason,
                    "previous_quantity": change.previous,
                    "new_quantity": change.new,
                },
            )
            self.notifier.notify(
                db,
                LowStockSignal(
                    organization_id=ctx.organization_id,
                    item_id=item_id,
                    location_id=location_id,
                    new_quantity=change.new,
                    reorder_point=change.reorder_point,
                ),
            )
            result = AdjustmentResult(
                adjustment_id=int(fact.id),
                previous_quantity=change.previous,
                new_quantity=change.new,
                reorder_point=change.reorder_point,
            )

        logger.info(
            "stock adjusted item=%s location=%s %s -> %s",
            item_id, location_id, result.previous_quantity, result.new_quantity,
        )
        return result

    def transfer_stock(
        self,
        db: Session,
        ctx: RequestContext,
        *,
        item_id: int,
        from_location_id: int,
        to_location_id: int,
        quantity: int,
        note: str | None = None,
    ) -> tuple[AdjustmentResult, AdjustmentResult]:
        """Transfert = deux écritures ledger, deux faits (-q à la source, +q à la destination)."""
        require_role(ctx, Role.staff)
        _require_whole_number(quantity, "Transfer quantity")
        if quantity <= 0:
            raise ValidationError("Transfer quantity must be greater than zero")
        if from_location_id == to_location_id:
            raise ValidationError("Cannot transfer to the same location")

        with unit_of_work(db):
            get_item(db, organization_id=ctx.organization_id, item_id=item_id)
            get_location(db, organization_id=ctx.organization_id, location_id=from_location_id)
            get_location(db, organization_id=ctx.organization_id, location_id=to_location_id)

            source = self.ledger.get_location_inventory(
                db, item_id=item_id, location_id=from_location_id, for_update=True
            )
            if source.quantity < quantity:
                raise BusinessRuleViolationError(
                    f"Insufficient stock at source location (available: {source.quantity}, required: {quantity})",
                    {"available": source.quantity, "required": quantity},
                )

            out_change = self.ledger.adjust_stock(
                db,
                organization_id=ctx.organization_id,
                item_id=item_id,
                location_id=from_location_id,
                delta=-quantity,
            )
            out_fact = create_stock_adjustment(
                db, ctx,
                item_id=item_id,
                location_id=from_location_id,
                quantity=-quantity,
                reason="Transfer Out",
                note=note,
            )
            in_change = self.ledger.adjust_stock(
                db,
                organization_id=ctx.organization_id,
                item_id=item_id,
                location_id=to_location_id,
                delta=quantity,
            )
            in_fact = create_stock_adjustment(
                db, ctx,
                item_id=item_id,
                location_id=to_location_id,
                quantity=quantity,
                reason="Transfer In",
                note=note,
            )
            self.audit.record(
                db,
                ctx,
                action="STOCK_TRANSFERRED",
                entity_type="Item",
                entity_id=item_id,
                changes={
                    "from_location_id": from_location_id,
                    "to_location_id": to_location_id,
                    "quantity": quantity,
                    "source": {"before": out_change.previous, "after": out_change.new},
                    "destination": {"before": in_change.previous, "after": in_change.new},
                },
            )
            self.notifier.notify(
                db,
                LowStockSignal(
                    organization_id=ctx.organization_id,
                    item_id=item_id,
                    location_id=from_location_id,
                    new_quantity=out_change.new,
                    reorder_point=out_change.reorder_point,
                ),
            )
            results = (
                AdjustmentResult(int(out_fact.id), out_change.previous, out_change.new, out_change.reorder_point),
                AdjustmentResult(int(in_fact.id), in_change.previous, in_change.new, in_change.reorder_point),
            )

        logger.info(
            "stock transferred item=%s %s -> %s qty=%s",
            item_id, from_location_id, to_location_id, quantity,
        )
        return results

    def update_reorder_settings(
        self,
        db: Session,
        ctx: RequestContext,
        *,
        item_id: int,
        location_id: int,
        reorder_point: int | None,
        reorder_quantity: int | None,
        max_stock: int | None | Unset = UNSET,
    ) -> None:
        """Seuils uniquement : la quantité ne bouge pas, donc aucun fait d'ajustement."""
        require_role(ctx, Role.staff)
        if reorder_point is not None and reorder_point < 0:
            raise ValidationError("Reorder point cannot be negative")
        if reorder_quantity is not None and reorder_quantity <= 0:
            raise ValidationError("Reorder quantity must be positive")
        if not isinstance(max_stock, Unset) and max_stock is not None and max_stock < 0:
            raise ValidationError("Max stock cannot be negative")

        with unit_of_work(db):
            before = self.ledger.set_thresholds(
                db,
                organization_id=ctx.organization_id,
                item_id=item_id,
                location_id=location_id,
                reorder_point=reorder_point,
                reorder_quantity=reorder_quantity,
                max_stock=max_stock,
            )
            after = {"reorder_point": reorder_point, "reorder_quantity": reorder_quantity}
            if not isinstance(max_stock, Unset):
                after["max_stock"] = max_stock
            self.audit.record(
                db,
                ctx,
                action="REORDER_SETTINGS_UPDATED",
                entity_type="LocationInventory",
                entity_id=f"{item_id}:{location_id}",
                changes={
                    "before": {
                        "reorder_point": before.reorder_point,
                        "reorder_quantity": before.reorder_quantity,
                        "max_stock": before.max_stock,
                    },
                    "after": after,
                },
            )

    def list_adjustments(
        self,
        db: Session,
        ctx: RequestContext,
        *,
        item_id: int | None = None,
        location_id: int | None = None,
        limit: int = 50,
    ) -> list[StockAdjustment]:
        stmt = (
            select(StockAdjustment)
            .where(StockAdjustment.organization_id == ctx.organization_id)
            .order_by(StockAdjustment.created_at.desc(), StockAdjustment.id.desc())
            .limit(limit)
        )
        if item_id is not None:
            stmt = stmt.where(StockAdjustment.item_id == item_id)
        if location_id is not None:
            stmt = stmt.where(StockAdjustment.location_id == location_id)
        return list(db.execute(stmt).scalars().all())
