import pytest
from sqlalchemy import create_engine, select

from backend.app.db.base import Base
from backend.app.db.models.models_v1 import StockAdjustment
from backend.app.db.session import enable_sqlite_foreign_keys
from backend.services.container import build_services
from backend.services.inventory import InventoryLedger


@pytest.fixture(scope="function")
def engine(tmp_path):
    """
    Base SQLite sur fichier : deux sessions = deux connexions réelles,
    ce qu'une base en mémoire partagée ne permet pas.
    """
    eng = create_engine(f"sqlite:///{tmp_path / 'stock.db'}")
    enable_sqlite_foreign_keys(eng)
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        eng.dispose()


class _RacingLedger(InventoryLedger):
    """Une autre transaction crée et valide la ligne juste avant notre insertion."""

    def __init__(self, concurrent_write) -> None:
        self.concurrent_write = concurrent_write
        self.raced = False

    def _insert_missing_row(self, db, item_id, location_id):
        if not self.raced:
            self.raced = True
            self.concurrent_write(item_id, location_id)
        super()._insert_missing_row(db, item_id, location_id)


@pytest.fixture
def concurrent_adjustment(session_factory, ctx):
    """+5 enregistré et validé depuis une seconde session."""

    def _write(item_id, location_id):
        other = session_factory()
        try:
            build_services().adjustments.record_adjustment(
                other, ctx, item_id=item_id, location_id=location_id, quantity=5
            )
        finally:
            other.close()

    return _write


def _sum_of_facts(db, item_id, location_id):
    rows = db.execute(
        select(StockAdjustment.quantity)
        .where(StockAdjustment.item_id == item_id)
        .where(StockAdjustment.location_id == location_id)
    ).scalars().all()
    return sum(rows)


def test_receipt_keeps_concurrent_first_write(db_session, ctx, item, location, concurrent_adjustment):
    services = build_services(ledger=_RacingLedger(concurrent_adjustment))
    receipt = services.receiving.create_receipt(db_session, ctx, location_id=location.id)
    services.receiving.add_line(db_session, ctx, receipt_id=receipt.id, item_id=item.id, quantity=10)

    services.receiving.confirm_receipt(db_session, ctx, receipt_id=receipt.id)

    assert services.ledger.raced
    snap = services.ledger.get_location_inventory(db_session, item_id=item.id, location_id=location.id)
    assert snap.quantity == 15
    assert _sum_of_facts(db_session, item.id, location.id) == 15


def test_reorder_settings_keep_concurrent_first_write(db_session, ctx, item, location, concurrent_adjustment):
    services = build_services(ledger=_RacingLedger(concurrent_adjustment))

    services.adjustments.update_reorder_settings(
        db_session, ctx, item_id=item.id, location_id=location.id, reorder_point=3, reorder_quantity=10
    )

    assert services.ledger.raced
    snap = services.ledger.get_location_inventory(db_session, item_id=item.id, location_id=location.id)
    assert (snap.quantity, snap.reorder_point, snap.reorder_quantity) == (5, 3, 10)
    assert _sum_of_facts(db_session, item.id, location.id) == 5


def test_lock_batch_materializes_missing_rows(db_session, org, item, second_item, location, set_stock):
    set_stock(item.id, location.id, 4, reorder_point=2)
    ledger = InventoryLedger()

    locked = ledger.lock_location_inventory_batch(
        db_session, organization_id=org.id, item_ids=[second_item.id, item.id], location_id=location.id
    )

    assert list(locked) == sorted([item.id, second_item.id])
    assert (locked[item.id].quantity, locked[item.id].reorder_point) == (4, 2)
    assert locked[second_item.id].quantity == 0
    assert all(snap.persisted for snap in locked.values())
