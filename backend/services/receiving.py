"""
Goods receiving (bons de réception).

Cycle de vie :

    DRAFT -> CONFIRMED   (application au ledger, une seule transaction)
    DRAFT -> CANCELLED   (aucun effet stock)

Les lignes ne sont modifiables qu'en DRAFT. Une ligne "skipped" porte
une quantité 0 : elle n'a aucun effet ledger mais compte comme item
"touché" pour le statut de la commande liée.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.db.base import utcnow
from backend.app.db.models.core_types import OrderStatus, ReceiptStatus, Role
from backend.app.db.models.models_v1 import GoodsReceipt, GoodsReceiptLine, Order
from backend.app.db.session import unit_of_work
from backend.services.adjustments import create_stock_adjustment
from backend.services.audit import AuditService
from backend.services.context import RequestContext, require_role
from backend.services.errors import BusinessRuleViolationError, NotFoundError, ValidationError
from backend.services.inventory import UNSET, InventoryLedger, Unset
from backend.services.lookups import get_item, get_location, get_order, get_supplier
from backend.services.notifications import LowStockNotifier, LowStockSignal
from backend.services.order_status import OrderStatusUpdater, confirmed_lines_for_order, received_by_item

logger = logging.getLogger("inventory.receiving")

GOODS_RECEIPT_REASON = "Goods Receipt"


@dataclass(frozen=True)
class ConfirmReceiptResult:
    receipt_id: int
    lines_processed: int
    low_stock_items: list[int] = field(default_factory=list)
    order_id: int | None = None
    order_status: OrderStatus | None = None


@dataclass(frozen=True)
class MismatchLine:
    item_id: int
    item_name: str
    ordered: int
    received: int


@dataclass(frozen=True)
class ReceivingMismatch:
    order_id: int
    reference: str | None
    status: OrderStatus
    items: list[MismatchLine]


def _validate_expiry(expiry_date: date | None) -> None:
    if expiry_date is None:
        return
    today = date.today()
    earliest = today - timedelta(days=365)
    latest = today + timedelta(days=365 * 10)
    if expiry_date < earliest or expiry_date > latest:
        raise ValidationError(
            "Expiry date is out of the accepted range",
            {"expiry_date": expiry_date.isoformat(), "min": earliest.isoformat(), "max": latest.isoformat()},
        )


def _validate_line_quantity(quantity, skipped: bool) -> int:
    if skipped:
        return 0
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Received quantity must be a whole number", {"value": quantity})
    if quantity <= 0:
        raise ValidationError("Received quantity must be greater than zero", {"value": quantity})
    return quantity


def _require_draft(receipt: GoodsReceipt, message: str = "Cannot edit a receipt that is not in draft") -> None:
    if receipt.status != ReceiptStatus.draft:
        raise BusinessRuleViolationError(
            message,
            {"receipt_id": receipt.id, "status": receipt.status.value},
        )


class ReceivingService:
    def __init__(
        self,
        ledger: InventoryLedger,
        notifier: LowStockNotifier,
        audit: AuditService,
        order_status_updater: OrderStatusUpdater,
    ) -> None:
        self.ledger = ledger
        self.notifier = notifier
        self.audit = audit
        self.order_status_updater = order_status_updater

    # ---------- LECTURES ----------
    def get_receipt(self, db: Session, ctx: RequestContext, *, receipt_id: int) -> GoodsReceipt:
        return self._load_receipt(db, ctx, receipt_id)

    def list_receipts(
        self,
        db: Session,
        ctx: RequestContext,
        *,
        status: ReceiptStatus | None = None,
        order_id: int | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[GoodsReceipt]:
        stmt = (
            select(GoodsReceipt)
            .where(GoodsReceipt.organization_id == ctx.organization_id)
            .order_by(GoodsReceipt.created_at.desc(), GoodsReceipt.id.desc())
            .limit(limit)
            .offset(offset)
        )
        if status is not None:
            stmt = stmt.where(GoodsReceipt.status == status)
        if order_id is not None:
            stmt = stmt.where(GoodsReceipt.order_id == order_id)
        return list(db.execute(stmt).scalars().all())

    # ---------- DOCUMENT ----------
    def create_receipt(
        self,
        db: Session,
        ctx: RequestContext,
        *,
        location_id: int,
        order_id: int | None = None,
        supplier_id: int | None = None,
        notes: str | None = None,
    ) -> GoodsReceipt:
        require_role(ctx, Role.staff)

        with unit_of_work(db):
            location = get_location(db, organization_id=ctx.organization_id, location_id=location_id)
            order = None
            if order_id is not None:
                order = get_order(db, organization_id=ctx.organization_id, order_id=order_id)
            if supplier_id is not None:
                get_supplier(db, organization_id=ctx.organization_id, supplier_id=supplier_id)
            elif order is not None:
                supplier_id = order.supplier_id

            receipt = GoodsReceipt(
                organization_id=ctx.organization_id,
                location_id=location.id,
                order_id=order.id if order else None,
                supplier_id=supplier_id,
                status=ReceiptStatus.draft,
                notes=notes,
                created_by_id=ctx.user_id,
            )
            db.add(receipt)
            db.flush()
            self.audit.record(
                db,
                ctx,
                action="RECEIPT_CREATED",
                entity_type="GoodsReceipt",
                entity_id=receipt.id,
                changes={"location_id": location.id, "order_id": receipt.order_id, "supplier_id": supplier_id},
            )

        logger.info("receipt %s created (location=%s order=%s)", receipt.id, location_id, order_id)
        return receipt

    def cancel_receipt(self, db: Session, ctx: RequestContext, *, receipt_id: int) -> GoodsReceipt:
        require_role(ctx, Role.staff)

        with unit_of_work(db):
            receipt = self._load_receipt(db, ctx, receipt_id, for_update=True)
            _require_draft(receipt, "Can only cancel draft receipts")

            receipt.status = ReceiptStatus.cancelled
            db.flush()
            self.audit.record(
                db,
                ctx,
                action="RECEIPT_CANCELLED",
                entity_type="GoodsReceipt",
                entity_id=receipt.id,
                changes={"status": {"before": ReceiptStatus.draft.value, "after": receipt.status.value}},
            )

        logger.info("receipt %s cancelled", receipt_id)
        return receipt

    # ---------- LIGNES ----------
    def add_line(
        self,
        db: Session,
        ctx: RequestContext,
        *,
        receipt_id: int,
        item_id: int,
        quantity: int = 0,
        skipped: bool = False,
        batch_number: str | None = None,
        expiry_date: date | None = None,
        notes: str | None = None,
    ) -> GoodsReceiptLine:
        """Upsert par item : une ligne existante voit sa quantité incrémentée."""
        require_role(ctx, Role.staff)
        quantity = _validate_line_quantity(quantity, skipped)
        _validate_expiry(expiry_date)

        with unit_of_work(db):
            receipt = self._load_receipt(db, ctx, receipt_id, for_update=True)
            _require_draft(receipt)
            item = get_item(db, organization_id=ctx.organization_id, item_id=item_id)

            line = db.execute(
                select(GoodsReceiptLine)
                .where(GoodsReceiptLine.receipt_id == receipt.id)
                .where(GoodsReceiptLine.item_id == item.id)
            ).scalar_one_or_none()

            if line:
                before = line.quantity
                line.quantity = line.quantity + quantity
                line.skipped = skipped and line.quantity == 0
                if batch_number is not None:
                    line.batch_number = batch_number
                if expiry_date is not None:
                    line.expiry_date = expiry_date
                if notes is not None:
                    line.notes = notes
                action = "RECEIPT_LINE_UPDATED"
                changes = {"item_id": item.id, "quantity": {"before": before, "after": line.quantity}}
            else:
                line = GoodsReceiptLine(
                    receipt_id=receipt.id,
                    item_id=item.id,
                    quantity=quantity,
                    skipped=skipped,
                    batch_number=batch_number,
                    expiry_date=expiry_date,
                    notes=notes,
                )
                db.add(line)
                action = "RECEIPT_LINE_ADDED"
                changes = {"item_id": item.id, "item_name": item.name, "quantity": quantity, "skipped": skipped}

            db.flush()
            self.audit.record(
                db, ctx,
                action=action,
                entity_type="GoodsReceiptLine",
                entity_id=line.id,
                changes=changes,
            )

        return line

    def update_line(
        self,
        db: Session,
        ctx: RequestContext,
        *,
        line_id: int,
        quantity: int | Unset = UNSET,
        skipped: bool | Unset = UNSET,
        batch_number: str | None | Unset = UNSET,
        expiry_date: date | None | Unset = UNSET,
        notes: str | None | Unset = UNSET,
    ) -> GoodsReceiptLine:
        require_role(ctx, Role.staff)
        if not isinstance(expiry_date, Unset):
            _validate_expiry(expiry_date)

        with unit_of_work(db):
            line = self._load_line(db, ctx, line_id)
            _require_draft(line.receipt)

            before = {"quantity": line.quantity, "skipped": line.skipped}
            if skipped is True:
                line.skipped = True
                line.quantity = 0
            elif not isinstance(quantity, Unset):
                line.quantity = _validate_line_quantity(quantity, False)
                line.skipped = False
            elif skipped is False and line.skipped:
                raise ValidationError("A quantity is required when un-skipping a line", {"line_id": line_id})

            if not isinstance(batch_number, Unset):
                line.batch_number = batch_number
            if not isinstance(expiry_date, Unset):
                line.expiry_date = expiry_date
            if not isinstance(notes, Unset):
                line.notes = notes
            db.flush()

            self.audit.record(
                db, ctx,
                action="RECEIPT_LINE_UPDATED",
                entity_type="GoodsReceiptLine",
                entity_id=line.id,
                changes={
                    "item_id": line.item_id,
                    "before": before,
                    "after": {"quantity": line.quantity, "skipped": line.skipped},
                },
            )

        return line

    def remove_line(self, db: Session, ctx: RequestContext, *, line_id: int) -> None:
        require_role(ctx, Role.staff)

        with unit_of_work(db):
            line = self._load_line(db, ctx, line_id)
            _require_draft(line.receipt)

            item_id = line.item_id
            line.receipt.lines.remove(line)
            db.flush()
            self.audit.record(
                db, ctx,
                action="RECEIPT_LINE_REMOVED",
                entity_type="GoodsReceiptLine",
                entity_id=line_id,
                changes={"item_id": item_id},
            )

    # ---------- CONFIRMATION ----------
    def confirm_receipt(self, db: Session, ctx: RequestContext, *, receipt_id: int) -> ConfirmReceiptResult:
        """
        Applique toutes les lignes au ledger ou aucune.

        Une erreur sur n'importe quelle ligne annule la transaction entière
        (ledger, faits, statut du bon et de la commande liée).
        """
        require_role(ctx, Role.staff)

        with unit_of_work(db):
            receipt = self._load_receipt(db, ctx, receipt_id, for_update=True)
            _require_draft(receipt, "Receipt is not in draft")
            if not receipt.lines:
                raise BusinessRuleViolationError("Cannot confirm a receipt without lines", {"receipt_id": receipt_id})

            current = self.ledger.lock_location_inventory_batch(
                db,
                organization_id=ctx.organization_id,
                item_ids=[ln.item_id for ln in receipt.lines if not ln.skipped and ln.quantity > 0],
                location_id=receipt.location_id,
            )

            lines_processed = 0
            low_stock_items: list[int] = []
            for line in receipt.lines:
                if line.skipped or line.quantity == 0:
                    continue

                snapshot = current[int(line.item_id)]
                new_quantity = snapshot.quantity + line.quantity
                self.ledger.upsert_inventory(
                    db,
                    organization_id=ctx.organization_id,
                    item_id=line.item_id,
                    location_id=receipt.location_id,
                    quantity=new_quantity,
                )
                note = f"Receipt #{receipt.id}"
                if line.batch_number:
                    note = f"{note} - Batch: {line.batch_number}"
                create_stock_adjustment(
                    db,
                    ctx,
                    item_id=line.item_id,
                    location_id=receipt.location_id,
                    quantity=line.quantity,
                    reason=GOODS_RECEIPT_REASON,
                    note=note,
                )

                signal = LowStockSignal(
                    organization_id=ctx.organization_id,
                    item_id=int(line.item_id),
                    location_id=int(receipt.location_id),
                    new_quantity=new_quantity,
                    reorder_point=snapshot.reorder_point,
                )
                if signal.is_low:
                    low_stock_items.append(signal.item_id)
                    self.notifier.notify(db, signal)
                lines_processed += 1

            receipt.status = ReceiptStatus.confirmed
            receipt.received_at = utcnow()
            db.flush()

            order_status = None
            if receipt.order_id is not None:
                order_status = self.order_status_updater.refresh(db, ctx, order_id=receipt.order_id)

            self.audit.record(
                db,
                ctx,
                action="RECEIPT_CONFIRMED",
                entity_type="GoodsReceipt",
                entity_id=receipt.id,
                changes={
                    "location_id": receipt.location_id,
                    "order_id": receipt.order_id,
                    "line_count": len(receipt.lines),
                    "lines_processed": lines_processed,
                    "total_quantity": sum(ln.quantity for ln in receipt.lines if not ln.skipped),
                },
            )
            result = ConfirmReceiptResult(
                receipt_id=int(receipt.id),
                lines_processed=lines_processed,
                low_stock_items=low_stock_items,
                order_id=receipt.order_id,
                order_status=order_status,
            )

        logger.info(
            "receipt %s confirmed (%s lines applied, order=%s status=%s)",
            receipt_id, lines_processed, result.order_id,
            result.order_status.value if result.order_status else None,
        )
        return result

    # ---------- ÉCARTS ----------
    def find_receiving_mismatches(self, db: Session, ctx: RequestContext, *, limit: int = 50) -> list[ReceivingMismatch]:
        """Commandes partiellement reçues, ou reçues avec un écart commandé/reçu sur au moins un item."""
        orders = (
            db.execute(
                select(Order)
                .where(Order.organization_id == ctx.organization_id)
                .where(Order.status.in_([OrderStatus.partially_received, OrderStatus.received]))
                .order_by(Order.updated_at.desc(), Order.id.desc())
                .limit(limit)
            )
            .scalars()
            .all()
        )

        mismatches: list[ReceivingMismatch] = []
        for order in orders:
            received, _ = received_by_item(confirmed_lines_for_order(db, order_id=order.id))
            lines = [
                MismatchLine(
                    item_id=int(oi.item_id),
                    item_name=oi.item.name,
                    ordered=int(oi.quantity),
                    received=received.get(int(oi.item_id), 0),
                )
                for oi in order.items
                if received.get(int(oi.item_id), 0) != int(oi.quantity)
            ]
            if order.status == OrderStatus.partially_received or lines:
                mismatches.append(
                    ReceivingMismatch(
                        order_id=int(order.id),
                        reference=order.reference,
                        status=order.status,
                        items=lines,
                    )
                )
        return mismatches

    # ---------- HELPERS ----------
    def _load_receipt(
        self,
        db: Session,
        ctx: RequestContext,
        receipt_id: int,
        *,
        for_update: bool = False,
    ) -> GoodsReceipt:
        stmt = (
            select(GoodsReceipt)
            .where(GoodsReceipt.id == receipt_id)
            .where(GoodsReceipt.organization_id == ctx.organization_id)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        receipt = db.execute(stmt).scalar_one_or_none()
        if not receipt:
            raise NotFoundError("GoodsReceipt", receipt_id)
        return receipt

    def _load_line(self, db: Session, ctx: RequestContext, line_id: int) -> GoodsReceiptLine:
        line = db.get(GoodsReceiptLine, line_id)
        if not line or line.receipt.organization_id != ctx.organization_id:
            raise NotFoundError("GoodsReceiptLine", line_id)
        self._load_receipt(db, ctx, line.receipt_id, for_update=True)
        return line
