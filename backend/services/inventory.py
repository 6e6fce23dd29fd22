from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import LocationInventory
from backend.services.errors import BusinessRuleViolationError
from backend.services.lookups import get_item, get_location

logger = logging.getLogger("inventory.ledger")


class Unset:
    def __repr__(self) -> str:
        return "UNSET"


# Marqueur "paramètre non fourni" (distinct de None = "effacer le seuil")
UNSET = Unset()


@dataclass(frozen=True)
class StockSnapshot:
    """
    Lecture d'une ligne du ledger.

    Une ligne absente se lit comme quantité 0, sans seuils (persisted=False).
    Elle n'est matérialisée qu'à la première écriture.
    """

    item_id: int
    location_id: int
    quantity: int = 0
    reorder_point: int | None = None
    reorder_quantity: int | None = None
    max_stock: int | None = None
    persisted: bool = False

    @classmethod
    def from_row(cls, row: LocationInventory) -> "StockSnapshot":
        return cls(
            item_id=int(row.item_id),
            location_id=int(row.location_id),
            quantity=int(row.quantity),
            reorder_point=row.reorder_point,
            reorder_quantity=row.reorder_quantity,
            max_stock=row.max_stock,
            persisted=True,
        )

    @property
    def is_low(self) -> bool:
        return self.reorder_point is not None and self.quantity < self.reorder_point


@dataclass(frozen=True)
class StockChange:
    previous: int
    new: int
    reorder_point: int | None


class InventoryLedger:
    """
    Source de vérité du stock par (item, emplacement).

    Règles :
    - quantité jamais négative (vérifiée ici + CHECK en base)
    - lecture-vérification-écriture sous verrou de ligne (FOR UPDATE)
    - n'écrit AUCUN StockAdjustment : c'est l'appelant qui appaire
      chaque écriture avec exactement un fait
    - ne gère pas la transaction (frontière tenue par l'appelant)
    """

    # ---------- LECTURES ----------
    def get_location_inventory(
        self,
        db: Session,
        *,
        item_id: int,
        location_id: int,
        for_update: bool = False,
    ) -> StockSnapshot:
        row = self._select_row(db, item_id, location_id, for_update=for_update)
        if not row:
            return StockSnapshot(item_id=int(item_id), location_id=int(location_id))
        return StockSnapshot.from_row(row)

    def get_location_inventory_batch(
        self,
        db: Session,
        *,
        item_ids: Iterable[int],
        location_id: int,
        for_update: bool = False,
    ) -> dict[int, StockSnapshot]:
        """Un seul aller-retour pour N items d'un emplacement (évite le N+1)."""
        ids = sorted({int(i) for i in item_ids if i is not None})
        if not ids:
            return {}

        stmt = (
            select(LocationInventory)
            .where(LocationInventory.location_id == location_id)
            .where(LocationInventory.item_id.in_(ids))
            .order_by(LocationInventory.item_id)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        rows = db.execute(stmt).scalars().all()
        found = {int(r.item_id): StockSnapshot.from_row(r) for r in rows}
        return {
            iid: found.get(iid, StockSnapshot(item_id=iid, location_id=int(location_id)))
            for iid in ids
        }

    # ---------- ÉCRITURES ----------
    def lock_location_inventory_batch(
        self,
        db: Session,
        *,
        organization_id: int,
        item_ids: Iterable[int],
        location_id: int,
    ) -> dict[int, StockSnapshot]:
        """
        Verrouille les lignes de N items d'un emplacement avant une écriture
        calculée (total = courant + reçu).

        Les lignes absentes sont d'abord matérialisées à 0 : FOR UPDATE ne
        verrouille que des lignes existantes, et une première écriture
        concurrente serait sinon écrasée.
        """
        ids = sorted({int(i) for i in item_ids if i is not None})
        for iid in ids:
            self._check_refs(db, organization_id, iid, location_id)

        current = self.get_location_inventory_batch(db, item_ids=ids, location_id=location_id, for_update=True)
        missing = [iid for iid, snap in current.items() if not snap.persisted]
        if not missing:
            return current

        for iid in missing:
            self._insert_missing_row(db, iid, location_id)
        return self.get_location_inventory_batch(db, item_ids=ids, location_id=location_id, for_update=True)

    def adjust_stock(
        self,
        db: Session,
        *,
        organization_id: int,
        item_id: int,
        location_id: int,
        delta: int,
    ) -> StockChange:
        self._check_refs(db, organization_id, item_id, location_id)

        row = self._select_row(db, item_id, location_id, for_update=True)
        current = int(row.quantity) if row else 0
        new = current + delta
        if new < 0:
            raise BusinessRuleViolationError(
                f"Adjustment would result in negative quantity ({current} + {delta} = {new})",
                {"item_id": item_id, "location_id": location_id, "current": current, "delta": delta},
            )

        if not row:
            row = self._get_or_create_row(db, item_id, location_id)
            # une insertion concurrente a pu gagner : on recalcule sur la valeur verrouillée
            current = int(row.quantity)
            new = current + delta
            if new < 0:
                raise BusinessRuleViolationError(
                    f"Adjustment would result in negative quantity ({current} + {delta} = {new})",
                    {"item_id": item_id, "location_id": location_id, "current": current, "delta": delta},
                )

        row.quantity = new
        db.flush()

        logger.debug(
            "ledger adjust item=%s location=%s %s -> %s (delta=%s)",
            item_id, location_id, current, new, delta,
        )
        return StockChange(previous=current, new=new, reorder_point=row.reorder_point)

    def upsert_inventory(
        self,
        db: Session,
        *,
        organization_id: int,
        item_id: int,
        location_id: int,
        quantity: int,
        reorder_point: int | None | Unset = UNSET,
        reorder_quantity: int | None | Unset = UNSET,
        max_stock: int | None | Unset = UNSET,
    ) -> LocationInventory:
        """
        Écriture absolue (total déjà connu : comptage, réception).
        Les seuils non fournis sont conservés.
        """
        if quantity < 0:
            raise BusinessRuleViolationError(
                f"Inventory quantity cannot be negative ({quantity})",
                {"item_id": item_id, "location_id": location_id, "quantity": quantity},
            )

        self._check_refs(db, organization_id, item_id, location_id)

        row = self._get_or_create_row(db, item_id, location_id)
        row.quantity = quantity
        if not isinstance(reorder_point, Unset):
            row.reorder_point = reorder_point
        if not isinstance(reorder_quantity, Unset):
            row.reorder_quantity = reorder_quantity
        if not isinstance(max_stock, Unset):
            row.max_stock = max_stock
        db.flush()
        return row

    def set_thresholds(
        self,
        db: Session,
        *,
        organization_id: int,
        item_id: int,
        location_id: int,
        reorder_point: int | None | Unset = UNSET,
        reorder_quantity: int | None | Unset = UNSET,
        max_stock: int | None | Unset = UNSET,
    ) -> StockSnapshot:
        """Seuils seuls, sur la ligne verrouillée. Retourne l'état d'avant."""
        self._check_refs(db, organization_id, item_id, location_id)

        row = self._get_or_create_row(db, item_id, location_id)
        before = StockSnapshot.from_row(row)
        if not isinstance(reorder_point, Unset):
            row.reorder_point = reorder_point
        if not isinstance(reorder_quantity, Unset):
            row.reorder_quantity = reorder_quantity
        if not isinstance(max_stock, Unset):
            row.max_stock = max_stock
        db.flush()
        return before

    # ---------- HELPERS ----------
    def _check_refs(self, db: Session, organization_id: int, item_id: int, location_id: int) -> None:
        get_item(db, organization_id=organization_id, item_id=item_id)
        get_location(db, organization_id=organization_id, location_id=location_id)

    def _select_row(
        self,
        db: Session,
        item_id: int,
        location_id: int,
        *,
        for_update: bool,
    ) -> LocationInventory | None:
        stmt = (
            select(LocationInventory)
            .where(LocationInventory.item_id == item_id)
            .where(LocationInventory.location_id == location_id)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return db.execute(stmt).scalar_one_or_none()

    def _get_or_create_row(self, db: Session, item_id: int, location_id: int) -> LocationInventory:
        row = self._select_row(db, item_id, location_id, for_update=True)
        if row:
            return row

        # deux premiers écrivains concurrents convergent sur la même ligne,
        # relue ensuite sous verrou
        self._insert_missing_row(db, item_id, location_id)
        return self._select_row(db, item_id, location_id, for_update=True)

    def _insert_missing_row(self, db: Session, item_id: int, location_id: int) -> None:
        values = {"item_id": item_id, "location_id": location_id, "quantity": 0}
        dialect = db.get_bind().dialect.name

        if dialect == "postgresql":
            db.execute(
                pg_insert(LocationInventory)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["item_id", "location_id"])
            )
            return
        if dialect == "sqlite":
            db.execute(
                sqlite_insert(LocationInventory)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["item_id", "location_id"])
            )
            return

        # autres SGBD : INSERT dans un SAVEPOINT, le doublon concurrent est attendu
        try:
            with db.begin_nested():
                db.execute(insert(LocationInventory).values(**values))
        except IntegrityError:
            logger.debug("ledger row created concurrently item=%s location=%s", item_id, location_id)
