"""
Procurement service.

Génération de commandes brouillon à partir du stock bas, et envoi
d'une commande (DRAFT -> SENT).

Ce module ne touche pas au ledger : les quantités suggérées viennent
de LowStockAggregator, le stock n'évolue qu'à la réception.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.orm import Session

from backend.app.db.base import utcnow
from backend.app.db.models.core_types import OrderStatus, Role
from backend.app.db.models.models_v1 import Order, OrderItem
from backend.app.db.session import unit_of_work
from backend.services.audit import AuditService
from backend.services.context import RequestContext, require_role
from backend.services.errors import BusinessRuleViolationError, ValidationError
from backend.services.lookups import get_items, get_order, get_supplier
from backend.services.low_stock import LowStockAggregator

logger = logging.getLogger("inventory.procurement")

DRAFT_FROM_LOW_STOCK_NOTE = "Created from low-stock items"


@dataclass(frozen=True)
class DraftOrderSummary:
    order_id: int
    supplier_id: int
    item_count: int
    total_quantity: int


@dataclass(frozen=True)
class DraftOrdersResult:
    orders: list[DraftOrderSummary] = field(default_factory=list)
    skipped_items: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SendOrderResult:
    order_id: int
    supplier_id: int
    total_amount: Decimal
    item_count: int


def order_total(order: Order) -> Decimal:
    total = Decimal("0.00")
    for oi in order.items:
        if oi.unit_price is not None:
            total += Decimal(oi.unit_price) * oi.quantity
    return total.quantize(Decimal("0.01"))


class ProcurementService:
    def __init__(self, aggregator: LowStockAggregator, audit: AuditService) -> None:
        self.aggregator = aggregator
        self.audit = audit

    def draft_orders_from_low_stock(
        self,
        db: Session,
        ctx: RequestContext,
        *,
        item_ids: list[int],
    ) -> DraftOrdersResult:
        require_role(ctx, Role.staff)
        if not item_ids:
            raise ValidationError("Select at least one item")

        with unit_of_work(db):
            items = get_items(db, organization_id=ctx.organization_id, item_ids=item_ids)
            rows = self.aggregator.rows_for_items(db, [it.id for it in items])

            skipped: list[str] = []
            # supplier_id -> [(item_id, qty)]
            groups: dict[int, list[tuple[int, int]]] = defaultdict(list)
            for item in items:
                if item.default_supplier_id is None:
                    skipped.append(item.name)
                    continue
                summary = self.aggregator.compute_low_stock(item, rows[item.id])
                if summary.suggested_quantity <= 0:
                    continue
                groups[item.default_supplier_id].append((item.id, summary.suggested_quantity))

            summaries: list[DraftOrderSummary] = []
            for supplier_id, lines in groups.items():
                order = Order(
                    organization_id=ctx.organization_id,
                    supplier_id=supplier_id,
                    status=OrderStatus.draft,
                    notes=DRAFT_FROM_LOW_STOCK_NOTE,
                    created_by_id=ctx.user_id,
                )
                order.items = [OrderItem(item_id=iid, quantity=qty, unit_price=None) for iid, qty in lines]
                db.add(order)
                db.flush()

                self.audit.record(
                    db,
                    ctx,
                    action="ORDER_DRAFTED",
                    entity_type="Order",
                    entity_id=order.id,
                    changes={
                        "supplier_id": supplier_id,
                        "source": "low_stock",
                        "items": [{"item_id": iid, "quantity": qty} for iid, qty in lines],
                    },
                )
                summaries.append(
                    DraftOrderSummary(
                        order_id=int(order.id),
                        supplier_id=int(supplier_id),
                        item_count=len(lines),
                        total_quantity=sum(q for _, q in lines),
                    )
                )

        logger.info(
            "draft orders from low stock: %s created, %s items skipped",
            len(summaries), len(skipped),
        )
        return DraftOrdersResult(orders=summaries, skipped_items=skipped)

    def send_order(self, db: Session, ctx: RequestContext, *, order_id: int) -> SendOrderResult:
        require_role(ctx, Role.staff)

        with unit_of_work(db):
            order = get_order(db, organization_id=ctx.organization_id, order_id=order_id, for_update=True)
            if order.status != OrderStatus.draft:
                raise BusinessRuleViolationError(
                    "Only draft orders can be sent",
                    {"order_id": order_id, "status": order.status.value},
                )
            if order.supplier_id is None:
                raise ValidationError("Order has no supplier", {"order_id": order_id})
            if not order.items:
                raise ValidationError("Order has no items", {"order_id": order_id})
            if any(oi.quantity <= 0 for oi in order.items):
                raise ValidationError("All order items must have a positive quantity", {"order_id": order_id})

            supplier = get_supplier(db, organization_id=ctx.organization_id, supplier_id=order.supplier_id)
            if supplier.blocked:
                raise BusinessRuleViolationError(
                    f"Supplier {supplier.name} is blocked",
                    {"supplier_id": supplier.id},
                )

            total = order_total(order)
            order.status = OrderStatus.sent
            order.sent_at = utcnow()
            db.flush()

            self.audit.record(
                db,
                ctx,
                action="ORDER_SENT",
                entity_type="Order",
                entity_id=order.id,
                changes={
                    "status": {"before": OrderStatus.draft.value, "after": OrderStatus.sent.value},
                    "supplier_id": supplier.id,
                    "total_amount": total,
                },
            )
            result = SendOrderResult(
                order_id=int(order.id),
                supplier_id=int(supplier.id),
                total_amount=total,
                item_count=len(order.items),
            )

        logger.info("order %s sent to supplier %s (total=%s)", order_id, result.supplier_id, result.total_amount)
        return result
