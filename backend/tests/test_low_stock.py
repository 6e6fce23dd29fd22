from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from backend.app.db.models.core_types import OrderStatus
from backend.app.db.models.models_v1 import Order, OrderItem, Supplier
from backend.services.errors import BusinessRuleViolationError, NotFoundError, ValidationError
from backend.services.low_stock import LowStockAggregator


def _row(location_id, quantity, reorder_point=None, reorder_quantity=None, max_stock=None):
    return SimpleNamespace(
        location_id=location_id,
        quantity=quantity,
        reorder_point=reorder_point,
        reorder_quantity=reorder_quantity,
        max_stock=max_stock,
    )


def test_compute_low_stock_sums_fallbacks_over_low_locations():
    item = SimpleNamespace(id=1, name="Gants", default_supplier_id=None)
    rows = [
        _row(1, 15, reorder_point=20, reorder_quantity=10),  # 10
        _row(2, 3, reorder_point=5),                         # 5 (repli sur le point de commande)
        _row(3, 0, reorder_point=0),                         # 0 < 0 faux : pas bas
        _row(4, 50, reorder_point=20, reorder_quantity=30),  # au-dessus
        _row(5, 7),                                          # sans seuil
    ]

    summary = LowStockAggregator().compute_low_stock(item, rows)

    assert [loc.location_id for loc in summary.locations] == [1, 2]
    assert summary.suggested_quantity == 15


def test_find_low_stock_items_per_row_suggestion(
    db_session, ctx, item, second_item, location, second_location, set_stock
):
    set_stock(item.id, location.id, 4, reorder_point=10, max_stock=25)
    set_stock(item.id, second_location.id, 1, reorder_point=3, reorder_quantity=12)
    set_stock(second_item.id, location.id, 40, reorder_point=10)

    rows = LowStockAggregator().find_low_stock_items(db_session, ctx)

    assert [(r.location_id, r.shortfall, r.suggested_quantity) for r in rows] == [
        (location.id, 6, 21),
        (second_location.id, 2, 12),
    ]


def test_item_without_default_supplier_is_skipped(db_session, services, ctx, make_item, location, set_stock):
    x = make_item("X")
    set_stock(x.id, location.id, 15, reorder_point=20, reorder_quantity=10)

    result = services.procurement.draft_orders_from_low_stock(db_session, ctx, item_ids=[x.id])

    assert result.orders == []
    assert result.skipped_items == ["X"]
    assert db_session.execute(select(Order)).scalars().all() == []


def test_one_draft_order_per_supplier(db_session, services, ctx, org, make_item, location, set_stock):
    acme = Supplier(organization_id=org.id, name="Acme")
    bolt = Supplier(organization_id=org.id, name="Bolt")
    db_session.add_all([acme, bolt])
    db_session.commit()
    a1 = make_item("A1", supplier_id=acme.id)
    a2 = make_item("A2", supplier_id=acme.id)
    b1 = make_item("B1", supplier_id=bolt.id)
    healthy = make_item("Healthy", supplier_id=bolt.id)
    set_stock(a1.id, location.id, 1, reorder_point=5, reorder_quantity=10)
    set_stock(a2.id, location.id, 0, reorder_point=4)
    set_stock(b1.id, location.id, 2, reorder_point=3, reorder_quantity=6)
    set_stock(healthy.id, location.id, 50, reorder_point=3)

    result = services.procurement.draft_orders_from_low_stock(
        db_session, ctx, item_ids=[a1.id, a2.id, b1.id, healthy.id]
    )

    assert result.skipped_items == []
    assert sorted((o.supplier_id, o.item_count, o.total_quantity) for o in result.orders) == sorted(
        [(acme.id, 2, 14), (bolt.id, 1, 6)]
    )
    orders = db_session.execute(select(Order)).scalars().all()
    assert all(o.status == OrderStatus.draft for o in orders)
    assert all(o.notes == "Created from low-stock items" for o in orders)
    lines = db_session.execute(select(OrderItem)).scalars().all()
    assert {ln.item_id: ln.quantity for ln in lines} == {a1.id: 10, a2.id: 4, b1.id: 6}
    assert all(ln.unit_price is None for ln in lines)


def test_empty_selection_is_rejected(db_session, services, ctx):
    with pytest.raises(ValidationError):
        services.procurement.draft_orders_from_low_stock(db_session, ctx, item_ids=[])


def test_unknown_item_is_not_found(db_session, services, ctx, item):
    with pytest.raises(NotFoundError):
        services.procurement.draft_orders_from_low_stock(db_session, ctx, item_ids=[item.id, 424242])


# ---------- envoi ----------
@pytest.fixture
def draft_order(db_session, org, supplier, item, second_item):
    order = Order(organization_id=org.id, supplier_id=supplier.id, status=OrderStatus.draft)
    order.items = [
        OrderItem(item_id=item.id, quantity=3, unit_price=Decimal("2.50")),
        OrderItem(item_id=second_item.id, quantity=2, unit_price=Decimal("0.10")),
    ]
    db_session.add(order)
    db_session.commit()
    return order


def test_send_order_returns_decimal_total(db_session, services, ctx, draft_order):
    result = services.procurement.send_order(db_session, ctx, order_id=draft_order.id)

    assert result.total_amount == Decimal("7.70")
    sent = db_session.get(Order, draft_order.id)
    assert sent.status == OrderStatus.sent
    assert sent.sent_at is not None

    with pytest.raises(BusinessRuleViolationError):
        services.procurement.send_order(db_session, ctx, order_id=draft_order.id)


def test_send_order_to_blocked_supplier(db_session, services, ctx, supplier, draft_order):
    supplier.blocked = True
    db_session.commit()

    with pytest.raises(BusinessRuleViolationError):
        services.procurement.send_order(db_session, ctx, order_id=draft_order.id)
    assert db_session.get(Order, draft_order.id).status == OrderStatus.draft


def test_send_order_without_items(db_session, services, ctx, org, supplier):
    empty = Order(organization_id=org.id, supplier_id=supplier.id, status=OrderStatus.draft)
    db_session.add(empty)
    db_session.commit()

    with pytest.raises(ValidationError):
        services.procurement.send_order(db_session, ctx, order_id=empty.id)
