from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import Item, Location, LocationInventory
from backend.services.context import RequestContext


@dataclass(frozen=True)
class LowStockLocation:
    location_id: int
    quantity: int
    reorder_point: int
    reorder_quantity: int | None


@dataclass(frozen=True)
class LowStockSummary:
    item_id: int
    item_name: str
    default_supplier_id: int | None
    locations: list[LowStockLocation]
    suggested_quantity: int

    @property
    def is_low(self) -> bool:
        return bool(self.locations)


@dataclass(frozen=True)
class LowStockRow:
    item_id: int
    item_name: str
    sku: str | None
    location_id: int
    location_name: str
    quantity: int
    reorder_point: int
    reorder_quantity: int | None
    max_stock: int | None
    shortfall: int
    suggested_quantity: int


def _is_low(row: LocationInventory) -> bool:
    return row.reorder_point is not None and row.quantity < row.reorder_point


def row_suggestion(row: LocationInventory) -> int:
    if row.max_stock is not None:
        return max(0, row.max_stock - row.quantity)
    return row.reorder_quantity or row.reorder_point or 0


class LowStockAggregator:
    """Lecture seule du ledger : manques et quantités de réapprovisionnement suggérées."""

    def compute_low_stock(self, item: Item, rows: Iterable[LocationInventory]) -> LowStockSummary:
        low = [r for r in rows if _is_low(r)]
        return LowStockSummary(
            item_id=int(item.id),
            item_name=item.name,
            default_supplier_id=item.default_supplier_id,
            locations=[
                LowStockLocation(
                    location_id=int(r.location_id),
                    quantity=int(r.quantity),
                    reorder_point=int(r.reorder_point),
                    reorder_quantity=r.reorder_quantity,
                )
                for r in low
            ],
            suggested_quantity=sum(r.reorder_quantity or r.reorder_point or 1 for r in low),
        )

    def rows_for_items(self, db: Session, item_ids: Iterable[int]) -> dict[int, list[LocationInventory]]:
        ids = list(item_ids)
        out: dict[int, list[LocationInventory]] = {i: [] for i in ids}
        if not ids:
            return out
        rows = (
            db.execute(
                select(LocationInventory)
                .where(LocationInventory.item_id.in_(ids))
                .order_by(LocationInventory.item_id, LocationInventory.location_id)
            )
            .scalars()
            .all()
        )
        for r in rows:
            out[int(r.item_id)].append(r)
        return out

    def find_low_stock_items(
        self,
        db: Session,
        ctx: RequestContext,
        *,
        location_id: int | None = None,
    ) -> list[LowStockRow]:
        stmt = (
            select(LocationInventory, Item, Location)
            .join(Item, Item.id == LocationInventory.item_id)
            .join(Location, Location.id == LocationInventory.location_id)
            .where(Item.organization_id == ctx.organization_id)
            .where(LocationInventory.reorder_point.is_not(None))
            .where(LocationInventory.quantity < LocationInventory.reorder_point)
            .order_by(Item.name, Location.name)
        )
        if location_id is not None:
            stmt = stmt.where(LocationInventory.location_id == location_id)

        out: list[LowStockRow] = []
        for inv, item, loc in db.execute(stmt).all():
            out.append(
                LowStockRow(
                    item_id=int(item.id),
                    item_name=item.name,
                    sku=item.sku,
                    location_id=int(loc.id),
                    location_name=loc.name,
                    quantity=int(inv.quantity),
                    reorder_point=int(inv.reorder_point),
                    reorder_quantity=inv.reorder_quantity,
                    max_stock=inv.max_stock,
                    shortfall=int(inv.reorder_point) - int(inv.quantity),
                    suggested_quantity=row_suggestion(inv),
                )
            )
        return out
