"""
Stock count (inventaire tournant / comptage physique).

Cycle de vie d'une session :

    IN_PROGRESS -> COMPLETED
    IN_PROGRESS -> CANCELLED

Les lignes ne sont modifiables qu'en IN_PROGRESS. À la clôture avec
application, le ledger est écrasé par la quantité comptée (écriture
absolue) et le fait d'ajustement porte la variance mesurée à l'ajout
de la ligne. Un mouvement survenu entre le snapshot et la clôture est
donc remplacé par le résultat du comptage.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.db.base import utcnow
from backend.app.db.models.core_types import Role, StockCountStatus
from backend.app.db.models.models_v1 import StockCountLine, StockCountSession
from backend.app.db.session import unit_of_work
from backend.services.adjustments import create_stock_adjustment
from backend.services.audit import AuditService
from backend.services.context import RequestContext, require_role
from backend.services.errors import BusinessRuleViolationError, NotFoundError, ValidationError
from backend.services.inventory import InventoryLedger
from backend.services.lookups import get_item, get_location
from backend.services.notifications import LowStockNotifier, LowStockSignal

logger = logging.getLogger("inventory.stock_count")

STOCK_COUNT_REASON = "Stock Count"


@dataclass(frozen=True)
class CountLineResult:
    line_id: int
    variance: int


@dataclass(frozen=True)
class CompletionResult:
    session_id: int
    adjusted_items: int


def _validate_counted_quantity(counted_quantity) -> None:
    if isinstance(counted_quantity, bool) or not isinstance(counted_quantity, int):
        raise ValidationError("Counted quantity must be a whole number", {"value": counted_quantity})
    if counted_quantity < 0:
        raise ValidationError("Counted quantity cannot be negative", {"value": counted_quantity})


def _require_in_progress(session: StockCountSession, message: str = "Cannot edit completed session") -> None:
    if session.status != StockCountStatus.in_progress:
        raise BusinessRuleViolationError(
            message,
            {"session_id": session.id, "status": session.status.value},
        )


class StockCountService:
    def __init__(
        self,
        ledger: InventoryLedger,
        notifier: LowStockNotifier,
        audit: AuditService,
    ) -> None:
        self.ledger = ledger
        self.notifier = notifier
        self.audit = audit

    # ---------- LECTURES ----------
    def get_session(self, db: Session, ctx: RequestContext, *, session_id: int) -> StockCountSession:
        return self._load_session(db, ctx, session_id)

    def list_sessions(
        self,
        db: Session,
        ctx: RequestContext,
        *,
        status: StockCountStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[StockCountSession]:
        stmt = (
            select(StockCountSession)
            .where(StockCountSession.organization_id == ctx.organization_id)
            .order_by(StockCountSession.created_at.desc(), StockCountSession.id.desc())
            .limit(limit)
            .offset(offset)
        )
        if status is not None:
            stmt = stmt.where(StockCountSession.status == status)
        return list(db.execute(stmt).scalars().all())

    # ---------- SESSION ----------
    def create_session(
        self,
        db: Session,
        ctx: RequestContext,
        *,
        location_id: int,
        notes: str | None = None,
    ) -> StockCountSession:
        require_role(ctx, Role.staff)

        with unit_of_work(db):
            location = get_location(db, organization_id=ctx.organization_id, location_id=location_id)
            session = StockCountSession(
                organization_id=ctx.organization_id,
                location_id=location.id,
                status=StockCountStatus.in_progress,
                notes=notes,
                created_by_id=ctx.user_id,
            )
            db.add(session)
            db.flush()
            self.audit.record(
                db,
                ctx,
                action="STOCK_COUNT_CREATED",
                entity_type="StockCountSession",
                entity_id=session.id,
                changes={"location_id": location.id, "location_name": location.name},
            )

        logger.info("stock count session %s created at location %s", session.id, location_id)
        return session

    def cancel_session(self, db: Session, ctx: RequestContext, *, session_id: int) -> StockCountSession:
        require_role(ctx, Role.staff)

        with unit_of_work(db):
            session = self._load_session(db, ctx, session_id, for_update=True)
            _require_in_progress(session, "Can only cancel in-progress sessions")

            session.status = StockCountStatus.cancelled
            db.flush()
            self.audit.record(
                db,
                ctx,
                action="STOCK_COUNT_CANCELLED",
                entity_type="StockCountSession",
                entity_id=session.id,
                changes={"status": {"before": StockCountStatus.in_progress.value, "after": session.status.value}},
            )

        logger.info("stock count session %s cancelled", session_id)
        return session

    def delete_session(self, db: Session, ctx: RequestContext, *, session_id: int) -> None:
        """Suppression administrative ; une session COMPLETED est conservée."""
        require_role(ctx, Role.admin)

        with unit_of_work(db):
            session = self._load_session(db, ctx, session_id, for_update=True)
            if session.status == StockCountStatus.completed:
                raise BusinessRuleViolationError(
                    "Cannot delete completed session", {"session_id": session_id}
                )
            db.delete(session)
            db.flush()
            self.audit.record(
                db,
                ctx,
                action="STOCK_COUNT_DELETED",
                entity_type="StockCountSession",
                entity_id=session_id,
                changes={"status": session.status.value},
            )

    # ---------- LIGNES ----------
    def add_or_update_line(
        self,
        db: Session,
        ctx: RequestContext,
        *,
        session_id: int,
        item_id: int,
        counted_quantity: int,
        notes: str | None = None,
    ) -> CountLineResult:
        require_role(ctx, Role.staff)
        _validate_counted_quantity(counted_quantity)

        with unit_of_work(db):
            session = self._load_session(db, ctx, session_id, for_update=True)
            _require_in_progress(session)
            item = get_item(db, organization_id=ctx.organization_id, item_id=item_id)

            line = db.execute(
                select(StockCountLine)
                .where(StockCountLine.session_id == session.id)
                .where(StockCountLine.item_id == item.id)
            ).scalar_one_or_none()

            if line:
                # variance recalculée contre le snapshot d'origine, pas une relecture
                before = line.counted_quantity
                line.counted_quantity = counted_quantity
                line.variance = counted_quantity - line.system_quantity
                if notes is not None:
                    line.notes = notes
                db.flush()
                action = "STOCK_COUNT_LINE_UPDATED"
                changes = {
                    "item_id": item.id,
                    "item_name": item.name,
                    "counted_quantity": {"before": before, "after": counted_quantity},
                    "system_quantity": line.system_quantity,
                    "variance": line.variance,
                }
            else:
                snapshot = self.ledger.get_location_inventory(
                    db, item_id=item.id, location_id=session.location_id
                )
                line = StockCountLine(
                    session_id=session.id,
                    item_id=item.id,
                    counted_quantity=counted_quantity,
                    system_quantity=snapshot.quantity,
                    variance=counted_quantity - snapshot.quantity,
                    notes=notes,
                )
                db.add(line)
                db.flush()
                action = "STOCK_COUNT_LINE_ADDED"
                changes = {
                    "item_id": item.id,
                    "item_name": item.name,
                    "counted_quantity": counted_quantity,
                    "system_quantity": line.system_quantity,
                    "variance": line.variance,
                }

            self.audit.record(
                db, ctx,
                action=action,
                entity_type="StockCountLine",
                entity_id=line.id,
                changes=changes,
            )
            result = CountLineResult(line_id=int(line.id), variance=int(line.variance))

        return result

    def update_line(
        self,
        db: Session,
        ctx: RequestContext,
        *,
        line_id: int,
        counted_quantity: int,
        notes: str | None = None,
    ) -> CountLineResult:
        require_role(ctx, Role.staff)
        _validate_counted_quantity(counted_quantity)

        with unit_of_work(db):
            line = self._load_line(db, ctx, line_id)
            _require_in_progress(line.session)

            before = line.counted_quantity
            line.counted_quantity = counted_quantity
            line.variance = counted_quantity - line.system_quantity
            if notes is not None:
                line.notes = notes
            db.flush()
            self.audit.record(
                db, ctx,
                action="STOCK_COUNT_LINE_UPDATED",
                entity_type="StockCountLine",
                entity_id=line.id,
                changes={
                    "item_id": line.item_id,
                    "counted_quantity": {"before": before, "after": counted_quantity},
                    "system_quantity": line.system_quantity,
                    "variance": line.variance,
                },
            )
            result = CountLineResult(line_id=int(line.id), variance=int(line.variance))

        return result

    def remove_line(self, db: Session, ctx: RequestContext, *, line_id: int) -> None:
        require_role(ctx, Role.staff)

        with unit_of_work(db):
            line = self._load_line(db, ctx, line_id)
            _require_in_progress(line.session)

            item_id = line.item_id
            line.session.lines.remove(line)
            db.flush()
            self.audit.record(
                db, ctx,
                action="STOCK_COUNT_LINE_REMOVED",
                entity_type="StockCountLine",
                entity_id=line_id,
                changes={"item_id": item_id},
            )

    # ---------- CLÔTURE ----------
    def complete_session(
        self,
        db: Session,
        ctx: RequestContext,
        *,
        session_id: int,
        apply_adjustments: bool,
    ) -> CompletionResult:
        require_role(ctx, Role.staff)

        with unit_of_work(db):
            # verrou : une seconde clôture concurrente voit COMPLETED et échoue
            session = self._load_session(db, ctx, session_id, for_update=True)
            _require_in_progress(session, "Session is not in progress")
            if not session.lines:
                raise ValidationError("Session must have at least one line", {"session_id": session_id})

            adjusted_items = 0
            if apply_adjustments:
                for line in session.lines:
                    if line.variance == 0:
                        continue

                    existing = self.ledger.get_location_inventory(
                        db, item_id=line.item_id, location_id=session.location_id, for_update=True
                    )
                    # écriture absolue : le comptage fait foi (seuils conservés)
                    self.ledger.upsert_inventory(
                        db,
                        organization_id=ctx.organization_id,
                        item_id=line.item_id,
                        location_id=session.location_id,
                        quantity=line.counted_quantity,
                    )
                    note = f"Count session #{session.id}"
                    if line.notes:
                        note = f"{note} - {line.notes}"
                    create_stock_adjustment(
                        db,
                        ctx,
                        item_id=line.item_id,
                        location_id=session.location_id,
                        quantity=line.variance,
                        reason=STOCK_COUNT_REASON,
                        note=note,
                    )
                    self.notifier.notify(
                        db,
                        LowStockSignal(
                            organization_id=ctx.organization_id,
                            item_id=line.item_id,
                            location_id=session.location_id,
                            new_quantity=line.counted_quantity,
                            reorder_point=existing.reorder_point,
                        ),
                    )
                    adjusted_items += 1

            session.status = StockCountStatus.completed
            session.completed_at = utcnow()
            db.flush()

            self.audit.record(
                db,
                ctx,
                action="STOCK_COUNT_COMPLETED",
                entity_type="StockCountSession",
                entity_id=session.id,
                changes={
                    "location_id": session.location_id,
                    "line_count": len(session.lines),
                    "adjustments_applied": apply_adjustments,
                    "adjusted_item_count": adjusted_items,
                    "total_variance": sum(abs(ln.variance) for ln in session.lines),
                },
            )

        logger.info(
            "stock count session %s completed (apply=%s, adjusted=%s)",
            session_id, apply_adjustments, adjusted_items,
        )
        return CompletionResult(session_id=int(session_id), adjusted_items=adjusted_items)

    # ---------- HELPERS ----------
    def _load_session(
        self,
        db: Session,
        ctx: RequestContext,
        session_id: int,
        *,
        for_update: bool = False,
    ) -> StockCountSession:
        stmt = (
            select(StockCountSession)
            .where(StockCountSession.id == session_id)
            .where(StockCountSession.organization_id == ctx.organization_id)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        session = db.execute(stmt).scalar_one_or_none()
        if not session:
            raise NotFoundError("StockCountSession", session_id)
        return session

    def _load_line(self, db: Session, ctx: RequestContext, line_id: int) -> StockCountLine:
        line = db.get(StockCountLine, line_id)
        if not line or line.session.organization_id != ctx.organization_id:
            raise NotFoundError("StockCountLine", line_id)
        # verrou de la session parente (statut relu dans la transaction)
        self._load_session(db, ctx, line.session_id, for_update=True)
        return line
