import pytest

from backend.app.db.models.models_v1 import LocationInventory
from backend.services.errors import BusinessRuleViolationError, NotFoundError
from backend.services.inventory import InventoryLedger


def test_absent_row_reads_as_zero_without_thresholds(db_session, item, location):
    ledger = InventoryLedger()

    snap = ledger.get_location_inventory(db_session, item_id=item.id, location_id=location.id)

    assert snap.quantity == 0
    assert snap.reorder_point is None
    assert snap.persisted is False
    assert db_session.get(LocationInventory, (item.id, location.id)) is None


def test_adjust_stock_materializes_row_on_first_write(db_session, org, item, location):
    ledger = InventoryLedger()

    change = ledger.adjust_stock(
        db_session, organization_id=org.id, item_id=item.id, location_id=location.id, delta=7
    )
    db_session.commit()

    assert (change.previous, change.new) == (0, 7)
    row = db_session.get(LocationInventory, (item.id, location.id))
    assert row is not None and row.quantity == 7


def test_adjust_stock_refuses_negative_result(db_session, org, item, location, set_stock):
    set_stock(item.id, location.id, 3)
    ledger = InventoryLedger()

    with pytest.raises(BusinessRuleViolationError):
        ledger.adjust_stock(
            db_session, organization_id=org.id, item_id=item.id, location_id=location.id, delta=-4
        )
    db_session.rollback()

    assert ledger.get_location_inventory(db_session, item_id=item.id, location_id=location.id).quantity == 3


def test_adjust_stock_on_absent_row_cannot_go_negative(db_session, org, item, location):
    ledger = InventoryLedger()

    with pytest.raises(BusinessRuleViolationError):
        ledger.adjust_stock(
            db_session, organization_id=org.id, item_id=item.id, location_id=location.id, delta=-1
        )


def test_upsert_preserves_thresholds_not_passed(db_session, org, item, location, set_stock):
    set_stock(item.id, location.id, 10, reorder_point=5, reorder_quantity=20, max_stock=40)
    ledger = InventoryLedger()

    ledger.upsert_inventory(
        db_session, organization_id=org.id, item_id=item.id, location_id=location.id, quantity=2
    )
    db_session.commit()

    snap = ledger.get_location_inventory(db_session, item_id=item.id, location_id=location.id)
    assert snap.quantity == 2
    assert (snap.reorder_point, snap.reorder_quantity, snap.max_stock) == (5, 20, 40)
    assert snap.is_low


def test_upsert_can_clear_a_threshold_explicitly(db_session, org, item, location, set_stock):
    set_stock(item.id, location.id, 10, reorder_point=5)
    ledger = InventoryLedger()

    ledger.upsert_inventory(
        db_session,
        organization_id=org.id,
        item_id=item.id,
        location_id=location.id,
        quantity=10,
        reorder_point=None,
    )
    db_session.commit()

    assert ledger.get_location_inventory(db_session, item_id=item.id, location_id=location.id).reorder_point is None


def test_upsert_rejects_negative_quantity(db_session, org, item, location):
    with pytest.raises(BusinessRuleViolationError):
        InventoryLedger().upsert_inventory(
            db_session, organization_id=org.id, item_id=item.id, location_id=location.id, quantity=-1
        )


def test_batch_read_fills_missing_rows_with_zero(db_session, item, second_item, location, set_stock):
    set_stock(item.id, location.id, 4)

    snaps = InventoryLedger().get_location_inventory_batch(
        db_session, item_ids=[item.id, second_item.id], location_id=location.id
    )

    assert snaps[item.id].quantity == 4 and snaps[item.id].persisted
    assert snaps[second_item.id].quantity == 0 and not snaps[second_item.id].persisted


def test_writes_are_scoped_to_the_organization(db_session, other_org, item, location):
    with pytest.raises(NotFoundError):
        InventoryLedger().adjust_stock(
            db_session, organization_id=other_org.id, item_id=item.id, location_id=location.id, delta=1
        )


def test_savepoint_insert_path_tolerates_existing_row(
    monkeypatch, db_session, item, second_item, location, set_stock
):
    set_stock(item.id, location.id, 9, reorder_point=4)
    ledger = InventoryLedger()
    # dialecte sans ON CONFLICT : INSERT simple dans un SAVEPOINT
    monkeypatch.setattr(db_session.get_bind().dialect, "name", "generic")

    ledger._insert_missing_row(db_session, item.id, location.id)
    ledger._insert_missing_row(db_session, second_item.id, location.id)
    db_session.commit()

    existing = ledger.get_location_inventory(db_session, item_id=item.id, location_id=location.id)
    created = ledger.get_location_inventory(db_session, item_id=second_item.id, location_id=location.id)
    assert (existing.quantity, existing.reorder_point) == (9, 4)
    assert created.persisted and created.quantity == 0
