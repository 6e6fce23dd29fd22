"""
Lookups vers les référentiels externes (catalogue, emplacements, fournisseurs, commandes).

Le moteur ne crée ni ne modifie ces entités : il vérifie seulement qu'elles
existent dans le périmètre de l'organisation. Hors périmètre = NotFoundError.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import Item, Location, Order, Supplier
from backend.services.errors import NotFoundError


def get_item(db: Session, *, organization_id: int, item_id: int) -> Item:
    item = db.get(Item, item_id)
    if not item or item.organization_id != organization_id:
        raise NotFoundError("Item", item_id)
    return item


def get_items(db: Session, *, organization_id: int, item_ids: Iterable[int]) -> list[Item]:
    ids = list(dict.fromkeys(int(i) for i in item_ids))
    if not ids:
        return []

    rows = (
        db.execute(
            select(Item)
            .where(Item.organization_id == organization_id)
            .where(Item.id.in_(ids))
        )
        .scalars()
        .all()
    )
    by_id = {it.id: it for it in rows}
    missing = [i for i in ids if i not in by_id]
    if missing:
        raise NotFoundError("Item", missing[0])
    return [by_id[i] for i in ids]


def get_location(db: Session, *, organization_id: int, location_id: int) -> Location:
    loc = db.get(Location, location_id)
    if not loc or loc.organization_id != organization_id:
        raise NotFoundError("Location", location_id)
    return loc


def get_supplier(db: Session, *, organization_id: int, supplier_id: int) -> Supplier:
    supplier = db.get(Supplier, supplier_id)
    if not supplier or supplier.organization_id != organization_id:
        raise NotFoundError("Supplier", supplier_id)
    return supplier


def get_order(db: Session, *, organization_id: int, order_id: int, for_update: bool = False) -> Order:
    stmt = (
        select(Order)
        .where(Order.id == order_id)
        .where(Order.organization_id == organization_id)
    )
    if for_update:
        stmt = stmt.with_for_update()
    order = db.execute(stmt).scalar_one_or_none()
    if not order:
        raise NotFoundError("Order", order_id)
    return order
