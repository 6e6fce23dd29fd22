from datetime import timedelta

from sqlalchemy import select

from backend.app.db.base import utcnow
from backend.app.db.models.models_v1 import Notification
from backend.services.notifications import LowStockNotifier, LowStockSignal


def _signal(org, item, location, quantity=2, reorder_point=5):
    return LowStockSignal(
        organization_id=org.id,
        item_id=item.id,
        location_id=location.id,
        new_quantity=quantity,
        reorder_point=reorder_point,
    )


def _notifications(db):
    return db.execute(select(Notification).order_by(Notification.id)).scalars().all()


def test_signal_above_reorder_point_is_ignored(db_session, org, item, location):
    notifier = LowStockNotifier(dedup_hours=24)

    assert notifier.notify(db_session, _signal(org, item, location, quantity=5)) is None
    assert notifier.notify(db_session, _signal(org, item, location, reorder_point=None)) is None
    assert _notifications(db_session) == []


def test_two_crossings_inside_window_notify_once(db_session, org, item, location):
    notifier = LowStockNotifier(dedup_hours=24)

    first = notifier.notify(db_session, _signal(org, item, location, quantity=3))
    second = notifier.notify(db_session, _signal(org, item, location, quantity=1))
    db_session.commit()

    assert first is not None
    assert second is None
    assert len(_notifications(db_session)) == 1


def test_other_location_is_notified_separately(db_session, org, item, location, second_location):
    notifier = LowStockNotifier(dedup_hours=24)

    notifier.notify(db_session, _signal(org, item, location))
    notifier.notify(db_session, _signal(org, item, second_location))
    db_session.commit()

    assert [n.location_id for n in _notifications(db_session)] == [location.id, second_location.id]


def test_read_notification_no_longer_blocks(db_session, org, item, location):
    notifier = LowStockNotifier(dedup_hours=24)
    first = notifier.notify(db_session, _signal(org, item, location))
    first.read = True
    db_session.commit()

    again = notifier.notify(db_session, _signal(org, item, location))
    db_session.commit()

    assert again is not None
    assert len(_notifications(db_session)) == 2


def test_unread_notification_outside_window_no_longer_blocks(db_session, org, item, location):
    notifier = LowStockNotifier(dedup_hours=24)
    first = notifier.notify(db_session, _signal(org, item, location))
    first.created_at = utcnow() - timedelta(hours=25)
    db_session.commit()

    again = notifier.notify(db_session, _signal(org, item, location))
    db_session.commit()

    assert again is not None
    assert [n.read for n in _notifications(db_session)] == [False, False]


def test_default_window_comes_from_settings(monkeypatch):
    monkeypatch.setattr("backend.services.notifications.settings.low_stock_dedup_hours", 6)

    assert LowStockNotifier().dedup_window == timedelta(hours=6)
