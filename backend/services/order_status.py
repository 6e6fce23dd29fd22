from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.db.base import utcnow
from backend.app.db.models.core_types import OrderStatus, ReceiptStatus
from backend.app.db.models.models_v1 import GoodsReceipt, GoodsReceiptLine, Order
from backend.services.audit import AuditService
from backend.services.context import RequestContext
from backend.services.lookups import get_order

logger = logging.getLogger("inventory.order_status")

# DRAFT < SENT < {PARTIALLY_RECEIVED, RECEIVED}
STATUS_RANK = {
    OrderStatus.draft: 0,
    OrderStatus.sent: 1,
    OrderStatus.partially_received: 2,
    OrderStatus.received: 3,
}


class _OrderedLine(Protocol):
    item_id: int
    quantity: int


class _ReceivedLine(Protocol):
    item_id: int
    quantity: int
    skipped: bool


def received_by_item(confirmed_lines: Iterable[_ReceivedLine]) -> tuple[dict[int, int], set[int]]:
    """Somme reçue par item + items "touchés" (une ligne skipped reçoit 0 mais touche l'item)."""
    received: dict[int, int] = defaultdict(int)
    touched: set[int] = set()
    for line in confirmed_lines:
        touched.add(int(line.item_id))
        if not line.skipped:
            received[int(line.item_id)] += int(line.quantity)
    return dict(received), touched


def derive_order_status(
    order_items: Iterable[_OrderedLine],
    confirmed_lines: Iterable[_ReceivedLine],
) -> OrderStatus | None:
    """
    Statut dérivé de l'historique complet des réceptions confirmées.

    - tout item reçu >= commandé      -> RECEIVED
    - sinon un item reçu > 0 ou touché -> PARTIALLY_RECEIVED
    - sinon None (pas de changement)
    """
    items = list(order_items)
    received, touched = received_by_item(confirmed_lines)

    if not items:
        return None

    if all(received.get(int(oi.item_id), 0) >= int(oi.quantity) for oi in items):
        return OrderStatus.received

    ordered_ids = {int(oi.item_id) for oi in items}
    if any(received.get(iid, 0) > 0 or iid in touched for iid in ordered_ids):
        return OrderStatus.partially_received

    return None


def confirmed_lines_for_order(db: Session, *, order_id: int) -> list[GoodsReceiptLine]:
    return list(
        db.execute(
            select(GoodsReceiptLine)
            .join(GoodsReceipt, GoodsReceipt.id == GoodsReceiptLine.receipt_id)
            .where(GoodsReceipt.order_id == order_id)
            .where(GoodsReceipt.status == ReceiptStatus.confirmed)
            .order_by(GoodsReceiptLine.id)
        )
        .scalars()
        .all()
    )


class OrderStatusUpdater:
    """Recalcule le statut d'une commande ; appelé uniquement par la confirmation de réception."""

    def __init__(self, audit: AuditService) -> None:
        self.audit = audit

    def refresh(self, db: Session, ctx: RequestContext, *, order_id: int) -> OrderStatus:
        order: Order = get_order(db, organization_id=ctx.organization_id, order_id=order_id, for_update=True)
        db.flush()

        derived = derive_order_status(order.items, confirmed_lines_for_order(db, order_id=order.id))
        current = order.status
        if derived is None or STATUS_RANK[derived] <= STATUS_RANK[current]:
            return current

        order.status = derived
        if derived == OrderStatus.received:
            order.received_at = utcnow()
        db.flush()

        self.audit.record(
            db,
            ctx,
            action="ORDER_STATUS_CHANGED",
            entity_type="Order",
            entity_id=order.id,
            changes={"status": {"before": current.value, "after": derived.value}},
        )
        logger.info("order %s status %s -> %s", order.id, current.value, derived.value)
        return derived
